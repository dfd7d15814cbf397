import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import db
from .errors import UpstreamFailure

logger = logging.getLogger(__name__)


def utcnow():
    return datetime.now(timezone.utc)


habit_members = db.Table(
    "habit_members",
    db.Column("habit_id", db.Integer, db.ForeignKey("habit.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("user.id"), primary_key=True),
)

proof_verifications = db.Table(
    "proof_verifications",
    db.Column("proof_id", db.Integer, db.ForeignKey("proof.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("user.id"), primary_key=True),
)

proof_rejections = db.Table(
    "proof_rejections",
    db.Column("proof_id", db.Integer, db.ForeignKey("proof.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("user.id"), primary_key=True),
)


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    google_id = db.Column(db.String(255), unique=True, nullable=False)
    display_name = db.Column(db.String(120))
    email = db.Column(db.String(120))
    avatar = db.Column(db.String(500))
    joined_habits = db.relationship("Habit", secondary=habit_members, back_populates="members", lazy=True)


class Habit(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    creator_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    streak = db.Column(db.Integer, nullable=False, default=0)
    creator = db.relationship("User", foreign_keys=[creator_id], lazy=True)
    members = db.relationship("User", secondary=habit_members, back_populates="joined_habits", lazy=True)
    proofs = db.relationship("Proof", backref="habit", lazy=True, cascade="all, delete-orphan")


class Proof(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    habit_id = db.Column(db.Integer, db.ForeignKey("habit.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    media_url = db.Column(db.String(1000), nullable=False)
    media_kind = db.Column(db.String(10), nullable=False)  # image, video or file
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    user = db.relationship("User", foreign_keys=[user_id], lazy=True)
    verified_by = db.relationship("User", secondary=proof_verifications, lazy=True)
    rejected_by = db.relationship("User", secondary=proof_rejections, lazy=True)


def commit_or_raise(action, duplicates_ok=False):
    """Commit the session, mapping store failures to UpstreamFailure.

    With duplicates_ok, a unique-key violation (a concurrent writer already
    added the same set entry) is rolled back and reported by returning False.
    """
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if duplicates_ok:
            logger.debug(f"Duplicate entry ignored while trying to {action}")
            return False
        logger.error(f"Database error while trying to {action}: {str(e)}")
        raise UpstreamFailure(f"Failed to {action}", str(e)) from e
    except SQLAlchemyError as e:
        logger.error(f"Database error while trying to {action}: {str(e)}")
        db.session.rollback()
        raise UpstreamFailure(f"Failed to {action}", str(e)) from e
    return True
