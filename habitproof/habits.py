import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.orm import joinedload

from . import db
from .auth import public_user, token_required
from .errors import BadRequest, NotFound, Unauthenticated
from .models import Habit, commit_or_raise

logger = logging.getLogger(__name__)

habits_bp = Blueprint("habits", __name__)


def serialize_habit(habit):
    return {
        "id": habit.id,
        "title": habit.title,
        "description": habit.description,
        "creator": public_user(habit.creator),
        "members": [member.id for member in habit.members],
        "createdAt": habit.created_at.isoformat(),
        "streak": habit.streak
    }


def create_habit(user, title, description=None):
    if user is None:
        raise Unauthenticated()
    if not title or not str(title).strip():
        raise BadRequest("Title required")
    habit = Habit(title=str(title).strip(), description=description, creator=user)
    habit.members.append(user)
    db.session.add(habit)
    commit_or_raise("create habit")
    logger.info(f"Habit {habit.id} created by user {user.id}")
    return habit


def get_habit(habit_id):
    habit = db.session.get(Habit, habit_id)
    if habit is None:
        raise NotFound("Habit not found")
    return habit


def join_habit(user, habit_id):
    if user is None:
        raise Unauthenticated()
    habit = get_habit(habit_id)
    if user in habit.members:
        logger.debug(f"User {user.id} already a member of habit {habit.id}")
        return habit
    habit.members.append(user)
    if not commit_or_raise("join habit", duplicates_ok=True):
        return get_habit(habit_id)
    logger.info(f"User {user.id} joined habit {habit.id}")
    return habit


def list_habits():
    habits = Habit.query.options(joinedload(Habit.creator)).order_by(Habit.created_at, Habit.id).all()
    logger.debug(f"Fetched {len(habits)} habits")
    return habits


@habits_bp.route("/api/habits", methods=["POST"])
@token_required
def create_habit_route(user):
    data = request.get_json(silent=True) or {}
    habit = create_habit(user, data.get("title"), data.get("description"))
    return jsonify({"habit": serialize_habit(habit)}), 201


@habits_bp.route("/api/habits", methods=["GET"])
def list_habits_route():
    return jsonify({"habits": [serialize_habit(habit) for habit in list_habits()]}), 200


@habits_bp.route("/api/habits/<int:habit_id>/join", methods=["POST"])
@token_required
def join_habit_route(user, habit_id):
    habit = join_habit(user, habit_id)
    return jsonify({"habit": serialize_habit(habit)}), 200
