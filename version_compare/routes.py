"""
Version Compare Flask Routes
============================
API endpoints for comparing, reviewing and reconciling revisions.

Mounted at /api/versions by app.create_app(). The service instance lives in
app.extensions['version_compare'].
"""

import time
from functools import wraps
from typing import Any, Dict

from flask import Blueprint, Response, current_app, g, jsonify, request

from config_logging import get_logger, VERSION, ValidationError, VersionCompareError
from .models import ReconciliationDecision, Revision

logger = get_logger('version_compare.routes')

# Create blueprint
vc_blueprint = Blueprint('version_compare', __name__)

EXPORT_MIMETYPES = {
    'unified': 'text/x-diff',
    'diff': 'text/x-diff',
    'context': 'text/x-diff',
    'json': 'application/json',
    'html': 'text/html',
}


# =============================================================================
# STANDARDIZED ERROR HANDLING DECORATOR
# =============================================================================

def handle_vc_errors(f):
    """
    Decorator for standardized API error handling in Version Compare routes.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        start_time = time.time()
        try:
            result = f(*args, **kwargs)

            # Log slow operations
            elapsed = time.time() - start_time
            if elapsed > 5.0:
                logger.warning(f"Slow VC API call: {f.__name__} took {elapsed:.1f}s")

            return result

        except VersionCompareError as e:
            if e.status_code >= 500:
                logger.error(f"{e.code} in {f.__name__}: {e.message}")
            else:
                logger.warning(f"{e.code} in {f.__name__}: {e.message}")
            body = e.to_dict()
            body['error']['correlation_id'] = getattr(g, 'correlation_id', 'unknown')
            return jsonify(body), e.status_code
        except Exception as e:
            logger.exception(f"Unexpected error in {f.__name__}: {e}")
            return jsonify({
                'success': False,
                'error': {
                    'code': 'INTERNAL_ERROR',
                    'message': 'An unexpected error occurred',
                    'correlation_id': getattr(g, 'correlation_id', 'unknown')
                }
            }), 500

    return decorated


# =============================================================================
# HELPERS
# =============================================================================

def _service():
    return current_app.extensions['version_compare']


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", field='body')
    return data


def _require(data: Dict[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None or value == '':
        raise ValidationError(f"{name} is required", field=name)
    return str(value)


# =============================================================================
# ROUTES
# =============================================================================

@vc_blueprint.route('/health', methods=['GET'])
def health():
    """Liveness check."""
    return jsonify({'success': True, 'status': 'ok', 'version': VERSION})


@vc_blueprint.route('/revisions', methods=['GET'])
@handle_vc_errors
def list_revisions():
    """
    List stored revisions, oldest first.

    Query:
        component: optional component id filter
    """
    component = request.args.get('component') or None
    revisions = _service().store.list_revisions(component)
    return jsonify({
        'success': True,
        'revisions': [r.to_dict() for r in revisions],
        'count': len(revisions)
    })


@vc_blueprint.route('/revisions/<revision_id>', methods=['GET'])
@handle_vc_errors
def get_revision(revision_id: str):
    revision = _service().store.get_revision(revision_id)
    return jsonify({'success': True, 'revision': revision.to_dict()})


@vc_blueprint.route('/revisions/<revision_id>/history', methods=['GET'])
@handle_vc_errors
def get_history(revision_id: str):
    """The revision and its ancestors, newest first."""
    history = _service().store.history(revision_id)
    return jsonify({
        'success': True,
        'history': [r.to_dict() for r in history],
        'count': len(history)
    })


@vc_blueprint.route('/revisions', methods=['POST'])
@handle_vc_errors
def persist_revision():
    """
    Persist a reconciled candidate (or a new root revision).

    Request body:
        { candidate: Revision }

    Returns:
        { success: true, revision: Revision } with its final id and version
    """
    data = _json_body()
    payload = data.get('candidate')
    if payload is None:
        raise ValidationError("candidate is required", field='candidate')
    saved = _service().persist_candidate(Revision.from_dict(payload))
    return jsonify({'success': True, 'revision': saved.to_dict()}), 201


@vc_blueprint.route('/compare', methods=['POST'])
@handle_vc_errors
def compare():
    """
    Compare two stored revisions and open a review on the result.

    Request body:
        { fromId: str, toId: str }

    Returns:
        {
            success: true,
            comparison: { id, fromRevisionId, toRevisionId, hunks: [...], summary: {...} },
            reviewId: str
        }
    """
    data = _json_body()
    from_id = _require(data, 'fromId')
    to_id = _require(data, 'toId')

    service = _service()
    comparison = service.compare_versions(from_id, to_id)
    review = service.open_review(comparison)

    return jsonify({
        'success': True,
        'comparison': comparison.to_dict(),
        'reviewId': review.id
    })


@vc_blueprint.route('/comparisons/<comparison_id>', methods=['GET'])
@handle_vc_errors
def get_comparison(comparison_id: str):
    comparison = _service().get_comparison(comparison_id)
    return jsonify({'success': True, 'comparison': comparison.to_dict()})


@vc_blueprint.route('/comparisons/<comparison_id>/export', methods=['GET'])
@handle_vc_errors
def export_comparison(comparison_id: str):
    """
    Export a comparison.

    Query:
        format: unified (default) | context | json | html
        context: unchanged lines around each hunk (unified/context formats)
    """
    fmt = (request.args.get('format') or 'unified').lower()
    context_lines = None
    raw_context = request.args.get('context')
    if raw_context is not None:
        try:
            context_lines = int(raw_context)
        except ValueError:
            raise ValidationError("context must be an integer", field='context')
    content = _service().export(comparison_id, fmt, context_lines)
    return Response(content, mimetype=EXPORT_MIMETYPES.get(fmt, 'text/plain'))


@vc_blueprint.route('/comparisons/<comparison_id>/hunks/<hunk_id>/words', methods=['GET'])
@handle_vc_errors
def get_word_changes(comparison_id: str, hunk_id: str):
    """
    Word-level changes inside one modified hunk.

    Returns:
        { success: true, hunkId, changes: [{ id, hunkId, oldText, newText, offset }] }
    """
    changes = _service().word_changes(comparison_id, hunk_id)
    return jsonify({
        'success': True,
        'hunkId': hunk_id,
        'changes': [c.to_dict() for c in changes],
        'count': len(changes)
    })


@vc_blueprint.route('/reviews/<review_id>', methods=['GET'])
@handle_vc_errors
def get_review(review_id: str):
    review = _service().get_review(review_id)
    return jsonify({'success': True, 'review': review.to_dict()})


@vc_blueprint.route('/reviews/<review_id>', methods=['DELETE'])
@handle_vc_errors
def close_review(review_id: str):
    service = _service()
    service.get_review(review_id)
    service.close_review(review_id)
    return jsonify({'success': True, 'reviewId': review_id})


@vc_blueprint.route('/reviews/<review_id>/decisions', methods=['POST'])
@handle_vc_errors
def decide(review_id: str):
    """
    Record one accept/reject decision.

    Request body:
        { hunkId: str, decision: "accept" | "reject" }
    """
    data = _json_body()
    decision = ReconciliationDecision.from_dict(data)

    review = _service().get_review(review_id)
    review.decide(decision.hunk_id, decision.decision)
    return jsonify({'success': True, 'review': review.to_dict()})


@vc_blueprint.route('/reviews/<review_id>/reconcile', methods=['POST'])
@handle_vc_errors
def reconcile(review_id: str):
    """
    Build the candidate revision for the review.

    Request body:
        { decisions?: [{ hunkId, decision }], authorId?: str }

    Returns:
        { success: true, candidate: Revision, review: {...} }
    """
    data = _json_body()
    raw = data.get('decisions') or []
    if not isinstance(raw, list):
        raise ValidationError("decisions must be a list", field='decisions')
    extra = [ReconciliationDecision.from_dict(item) for item in raw]

    review = _service().get_review(review_id)
    candidate = review.reconcile(extra, author_id=str(data.get('authorId') or ''))
    return jsonify({
        'success': True,
        'candidate': candidate.to_dict(),
        'review': review.to_dict()
    })


@vc_blueprint.route('/reviews/<review_id>/restore', methods=['POST'])
@handle_vc_errors
def restore(review_id: str):
    """Candidate with every hunk of the review rejected."""
    data = _json_body()
    review = _service().get_review(review_id)
    candidate = review.restore(author_id=str(data.get('authorId') or ''))
    return jsonify({
        'success': True,
        'candidate': candidate.to_dict(),
        'review': review.to_dict()
    })

