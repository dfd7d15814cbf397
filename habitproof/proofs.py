import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.orm import joinedload

from . import db
from .auth import public_user, token_required
from .errors import BadRequest, NotFound, Unauthenticated
from .habits import get_habit
from .models import Proof, commit_or_raise
from .notifications import NEW_PROOF, PROOF_VERIFIED
from .storage import classify_media, temporary_upload

logger = logging.getLogger(__name__)

proofs_bp = Blueprint("proofs", __name__)

VOTE_ACTIONS = ("verify", "reject")


def serialize_proof(proof):
    return {
        "id": proof.id,
        "habitId": proof.habit_id,
        "user": public_user(proof.user),
        "mediaUrl": proof.media_url,
        "mediaKind": proof.media_kind,
        "verifiedBy": [voter.id for voter in proof.verified_by],
        "rejectedBy": [voter.id for voter in proof.rejected_by],
        "createdAt": proof.created_at.isoformat()
    }


def _dispatch(notify, *args):
    # Delivery problems must never fail the request that triggered them.
    try:
        notify(*args)
    except Exception:
        logger.exception("Notification dispatch failed")


def submit_proof(user, habit_id, media):
    """Upload the media, record the proof and announce it to the habit.

    `media` is the uploaded file (werkzeug FileStorage or anything with
    `filename`, `mimetype` and `save`).
    """
    if user is None:
        raise Unauthenticated()
    habit = get_habit(habit_id)
    if media is None or not media.filename:
        raise BadRequest("No file uploaded")

    blob_store = current_app.extensions["habitproof.blob_store"]
    with temporary_upload(media, current_app.config["UPLOAD_FOLDER"]) as local_path:
        media_url = blob_store.upload(local_path, media.filename, media.mimetype)

    proof = Proof(
        habit_id=habit.id,
        user=user,
        media_url=media_url,
        media_kind=classify_media(media.mimetype)
    )
    db.session.add(proof)
    commit_or_raise("save proof")
    logger.info(f"Proof {proof.id} submitted by user {user.id} for habit {habit.id}")

    dispatcher = current_app.extensions["habitproof.dispatcher"]
    _dispatch(
        dispatcher.notify_habit_members,
        habit.id,
        [member.id for member in habit.members],
        NEW_PROOF,
        {"habitId": habit.id, "proof": serialize_proof(proof)}
    )
    return proof


def list_proofs(habit_id):
    proofs = (
        Proof.query.options(joinedload(Proof.user))
        .filter_by(habit_id=habit_id)
        .order_by(Proof.created_at, Proof.id)
        .all()
    )
    logger.debug(f"Fetched {len(proofs)} proofs for habit {habit_id}")
    return proofs


def cast_vote(user, proof_id, action):
    if user is None:
        raise Unauthenticated()
    if action not in VOTE_ACTIONS:
        raise BadRequest("Action must be 'verify' or 'reject'")
    proof = db.session.get(Proof, proof_id)
    if proof is None:
        raise NotFound("Proof not found")

    # The two sets are independent: a user may sit in both.
    votes = proof.verified_by if action == "verify" else proof.rejected_by
    if user not in votes:
        votes.append(user)
        if commit_or_raise(f"{action} proof", duplicates_ok=True):
            logger.info(f"User {user.id} cast {action} on proof {proof_id}")
        else:
            proof = db.session.get(Proof, proof_id)

    dispatcher = current_app.extensions["habitproof.dispatcher"]
    _dispatch(
        dispatcher.notify_user,
        proof.user_id,
        PROOF_VERIFIED,
        {"proofId": proof.id, "action": action, "by": user.id}
    )
    return proof


@proofs_bp.route("/api/habits/<int:habit_id>/proof", methods=["POST"])
@token_required
def submit_proof_route(user, habit_id):
    proof = submit_proof(user, habit_id, request.files.get("media"))
    return jsonify({"proof": serialize_proof(proof)}), 201


@proofs_bp.route("/api/habits/<int:habit_id>/proofs", methods=["GET"])
def list_proofs_route(habit_id):
    return jsonify({"proofs": [serialize_proof(proof) for proof in list_proofs(habit_id)]}), 200


@proofs_bp.route("/api/proofs/<int:proof_id>/verify", methods=["POST"])
@token_required
def cast_vote_route(user, proof_id):
    data = request.get_json(silent=True) or {}
    proof = cast_vote(user, proof_id, data.get("action"))
    return jsonify({"proof": serialize_proof(proof)}), 200
