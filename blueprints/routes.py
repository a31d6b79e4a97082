from flask import Blueprint, current_app, request, jsonify

from db import db
from models import (
    PracticePlan,
    get_plan_for_day,
    get_topics_for_day,
    get_weekly_plan,
    initialize_default_plan,
    upsert_plan_entry,
    validate_day_of_week,
)
from services.backlog import get_backlog
from services.completion import record_completion, record_undo
from services.errors import InvalidArgument, NotFound, SchedulerError
from services.problems import list_problems, list_topics, log_problems, update_problem_details
from services.selector import compute_todays_repetitions
from services.stats import get_statistics, warm_statistics_cache
from services.store import ProblemStore
from utils.datetime_utils import day_bounds, day_of_week, utc_today
from utils.logging_config import get_logger

bp = Blueprint('bp', __name__)
logger = get_logger(__name__)


@bp.errorhandler(SchedulerError)
def handle_scheduler_error(error):
    if error.status_code >= 500:
        logger.error('%s: %s', error.__class__.__name__, error.message)
    return jsonify(error.to_dict()), error.status_code


def _parse_positive_int(name, default):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidArgument(f'{name} must be an integer')
    if value <= 0:
        raise InvalidArgument(f'{name} must be a positive integer')
    return value


def _parse_bool(raw):
    if raw is None:
        return None
    return raw.lower() == 'true'


# ============================================================================
# DASHBOARD ROUTE
# ============================================================================

@bp.route('/api/daily/dashboard')
def dashboard():
    """Today's topics, repetitions to review (capped) and the missed backlog"""
    today = utc_today()
    cap = _parse_positive_int('cap', current_app.config['DAILY_REPETITION_CAP'])
    topics = get_topics_for_day(day_of_week(today))
    store = ProblemStore()

    daily = compute_todays_repetitions(
        topics['repetition'],
        today,
        cap,
        store=store,
        weeks_ahead=current_app.config['DISTRIBUTION_WEEKS_AHEAD'],
    )
    backlog = get_backlog(today, cap * current_app.config['BACKLOG_CAP_MULTIPLIER'], store=store)

    start, end = day_bounds(today)
    todays_problems = store.find_by_filter({'is_completed': True})

    return jsonify({
        'date': today.isoformat(),
        'anchorTopic': topics['anchor'],
        'repetitionTopic': topics['repetition'],
        'todayAddedCount': store.count_by_filter({'kind': 'anchor', 'added_at__gte': start, 'added_at__lt': end}),
        'todaySolvedCount': sum(1 for p in todays_problems if p.completion_date == today),
        'repetitionProblems': [p.to_dict(today) for p in daily.to_show],
        'created': [p.to_dict(today) for p in daily.to_create],
        'deferred': daily.to_dict(today)['toDefer'],
        'backlog': [p.to_dict(today) for p in backlog],
    })


@bp.route('/api/daily/backlog')
def backlog():
    today = utc_today()
    default_cap = current_app.config['DAILY_REPETITION_CAP'] * current_app.config['BACKLOG_CAP_MULTIPLIER']
    cap = _parse_positive_int('cap', default_cap)
    return jsonify([p.to_dict(today) for p in get_backlog(today, cap)])


# ============================================================================
# PROBLEM ROUTES
# ============================================================================

@bp.route('/api/problems', methods=['POST'])
def add_problems():
    """Log solved problems as anchors for a topic"""
    data = request.get_json(silent=True) or {}
    result = log_problems(
        data.get('problemNumbers'),
        data.get('topic'),
        difficulty=data.get('difficulty'),
        notes=data.get('notes', ''),
        problem_slugs=data.get('problemSlug'),
        problem_titles=data.get('problemTitle'),
    )
    duplicates = result['duplicates']
    created = len(result['problems']) - len(duplicates)
    return jsonify({
        'message': f'{created} problem(s) added, {len(duplicates)} already tracked.',
        'problems': [p.to_dict() for p in result['problems']],
        'duplicates': duplicates or None,
    }), 201 if created else 200


@bp.route('/api/problems')
def problems_list():
    problems = list_problems(
        completed=_parse_bool(request.args.get('completed')),
        topic=request.args.get('topic', '').strip() or None,
        kind=request.args.get('kind', '').strip() or None,
    )
    return jsonify([p.to_dict() for p in problems])


@bp.route('/api/problems/topics')
def topics_list():
    return jsonify({'topics': list_topics()})


@bp.route('/api/problems/<int:problem_id>')
def problem_detail(problem_id):
    return jsonify(ProblemStore().get(problem_id).to_dict())


@bp.route('/api/problems/<int:problem_id>', methods=['PUT'])
def update_problem(problem_id):
    data = request.get_json(silent=True) or {}
    problem = update_problem_details(problem_id, data)
    return jsonify({'message': 'Problem updated successfully', 'problem': problem.to_dict()})


@bp.route('/api/problems/<int:problem_id>/complete', methods=['PATCH'])
def complete_problem(problem_id):
    result = record_completion(problem_id)
    warm_statistics_cache()
    return jsonify(result.to_dict())


@bp.route('/api/problems/<int:problem_id>/uncomplete', methods=['PATCH'])
def uncomplete_problem(problem_id):
    result = record_undo(problem_id)
    warm_statistics_cache()
    return jsonify(result.to_dict())


@bp.route('/api/problems/<int:problem_id>', methods=['DELETE'])
def delete_problem(problem_id):
    """Delete a problem; deleting an anchor removes its repetitions too"""
    problem = ProblemStore().delete_by_id(problem_id)
    return jsonify({'message': 'Problem deleted successfully', 'id': problem.id})


# ============================================================================
# PRACTICE PLAN ROUTES
# ============================================================================

@bp.route('/api/practice-plan')
def practice_plan_list():
    return jsonify([plan.to_dict() for plan in get_weekly_plan()])


@bp.route('/api/practice-plan/day/<day>')
def practice_plan_for_day(day):
    plan = get_plan_for_day(day)
    if plan is None:
        raise NotFound('Practice plan not found for this day')
    return jsonify(plan.to_dict())


@bp.route('/api/practice-plan', methods=['POST'])
def practice_plan_save():
    data = request.get_json(silent=True) or {}
    if data.get('dayOfWeek') is None:
        raise InvalidArgument('Day of week is required')
    plan = upsert_plan_entry(
        validate_day_of_week(data['dayOfWeek']),
        data.get('anchorTopic'),
        data.get('repetitionTopic'),
    )
    return jsonify(plan.to_dict())


@bp.route('/api/practice-plan/<int:plan_id>', methods=['DELETE'])
def practice_plan_delete(plan_id):
    plan = db.session.get(PracticePlan, plan_id)
    if plan is None:
        raise NotFound('Practice plan not found')
    db.session.delete(plan)
    db.session.commit()
    return jsonify({'message': 'Practice plan deleted successfully'})


@bp.route('/api/practice-plan/initialize', methods=['POST'])
def practice_plan_initialize():
    plans = initialize_default_plan()
    return jsonify({'plans': [plan.to_dict() for plan in plans]})


# ============================================================================
# STATISTICS ROUTES
# ============================================================================

@bp.route('/api/stats')
def statistics():
    return jsonify(get_statistics())
