import logging

from fastapi import (
    APIRouter,
    Depends,
    UploadFile,
    File,
    Form,
    Query,
)
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import List, Optional
from ..config import settings
from ..database import get_db
from ..models import Submission, SubmissionStatus, User, UserRole
from ..schemas.submission import (
    CodeRunRequest,
    CodeRunResponse,
    FeedbackCreate,
    FeedbackResponse,
    ReviewRequest,
    SubmissionCreate,
    SubmissionDetail,
    SubmissionResponse,
    UploadResponse,
)
from ..dependencies import (
    get_current_user,
    get_grading_backend,
    get_storage,
    require_role,
)
from ..errors import Forbidden, NotFound
from ..services import submissions as lifecycle
from ..services.grading import GradingBackend
from ..services.submissions import SubmissionPayload
from ..utils.file_handler import build_object_path, original_filename, read_upload_file
from ..utils.security import verify_file_token
from ..utils.storage import StorageProvider

router = APIRouter(tags=["Submissions"])

logger = logging.getLogger(__name__)


def _payload(body: SubmissionCreate) -> SubmissionPayload:
    return SubmissionPayload(
        code=body.code, language=body.language, file_url=body.file_url
    )


def _visible_submission(db: Session, submission_id: int, user: User) -> Submission:
    submission = lifecycle.get_submission(db, submission_id)
    if not lifecycle.can_view_submission(user, submission):
        raise Forbidden("You do not have access to this submission")
    return submission


def _file_response(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/challenges/{challenge_id}/draft",
    response_model=SubmissionResponse,
)
def save_draft(
    challenge_id: int,
    body: SubmissionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Save or overwrite the current user's draft"""
    return lifecycle.save_draft(db, challenge_id, current_user.user_id, _payload(body))


@router.post(
    "/challenges/{challenge_id}/submit",
    response_model=SubmissionResponse,
    status_code=201,
)
def submit_solution(
    challenge_id: int,
    body: SubmissionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    backend: GradingBackend = Depends(get_grading_backend),
):
    """Submit the final solution for a challenge"""
    submission = lifecycle.submit_final(
        db, challenge_id, current_user.user_id, _payload(body)
    )
    if settings.auto_grade_on_submit:
        submission = lifecycle.auto_grade(db, submission.submission_id, backend)
    return submission


@router.post(
    "/challenges/{challenge_id}/upload",
    response_model=UploadResponse,
    status_code=201,
)
def upload_submission(
    challenge_id: int,
    file: UploadFile = File(...),
    is_draft: bool = Form(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    """Upload a solution file and attach it to the user's submission"""
    user_id = current_user.user_id
    if not is_draft:
        lifecycle.check_can_submit(db, challenge_id, user_id)

    data = read_upload_file(file)
    file_ref = storage.put(
        build_object_path(challenge_id, user_id, file.filename),
        data,
        content_type=file.content_type,
    )

    try:
        if is_draft:
            existing = lifecycle.find_user_submission(db, challenge_id, user_id)
            payload = SubmissionPayload(
                code=existing.code if existing else None,
                language=existing.language if existing else None,
                file_url=file_ref,
            )
            submission = lifecycle.save_draft(db, challenge_id, user_id, payload)
        else:
            submission = lifecycle.submit_final(
                db, challenge_id, user_id, SubmissionPayload(file_url=file_ref)
            )
    except Exception:
        # Any failed transition leaves no object behind
        storage.delete(file_ref)
        raise

    logger.info("Stored %s (%d bytes) for submission %s", file_ref, len(data), submission.submission_id)
    response = UploadResponse.model_validate(
        {
            **SubmissionResponse.model_validate(submission).model_dump(),
            "file_name": file.filename,
            "file_size": len(data),
        }
    )
    return response


@router.post("/challenges/{challenge_id}/test", response_model=CodeRunResponse)
def run_public_tests(
    challenge_id: int,
    body: CodeRunRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    backend: GradingBackend = Depends(get_grading_backend),
):
    """Run code against the challenge's public test cases without submitting"""
    return lifecycle.run_public_tests(
        db, challenge_id, body.code, body.language, backend
    )


@router.get(
    "/challenges/{challenge_id}/my-submission",
    response_model=Optional[SubmissionDetail],
)
def get_my_submission(
    challenge_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the current user's submission for a challenge, if any"""
    lifecycle.get_challenge(db, challenge_id)
    submission = lifecycle.find_user_submission(db, challenge_id, current_user.user_id)
    if submission is None:
        return None
    detail = SubmissionDetail.model_validate(submission)
    detail.challenge_title = submission.challenge.title
    return detail


@router.get("/judge/submissions", response_model=List[SubmissionResponse])
def judge_queue(
    status: SubmissionStatus = SubmissionStatus.PENDING,
    current_user: User = Depends(require_role(UserRole.JUDGE)),
    db: Session = Depends(get_db),
):
    """Final submissions awaiting (or past) review, oldest first"""
    return (
        db.query(Submission)
        .filter(Submission.is_draft.is_(False), Submission.status == status)
        .order_by(Submission.submitted_at.asc(), Submission.submission_id.asc())
        .all()
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionDetail)
def get_submission_detail(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    """Submission details for its author, the challenge creator or a judge"""
    submission = _visible_submission(db, submission_id, current_user)
    detail = SubmissionDetail.model_validate(submission)
    detail.challenge_title = submission.challenge.title
    if submission.file_url:
        detail.file_name = original_filename(submission.file_url)
        detail.download_url = storage.signed_url(
            submission.file_url, settings.signed_url_ttl
        )
    return detail


@router.get("/submissions/{submission_id}/download")
def download_submission_file(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    """Stream the file attached to a submission"""
    submission = _visible_submission(db, submission_id, current_user)
    if not submission.file_url:
        raise NotFound("Submission has no attached file")

    data = storage.get(submission.file_url)
    return _file_response(data, original_filename(submission.file_url))


@router.get("/files/{file_path:path}")
def download_signed_file(
    file_path: str,
    token: str = Query(...),
    storage: StorageProvider = Depends(get_storage),
):
    """Serve a stored file through a signed, expiring link"""
    if not verify_file_token(token, file_path):
        raise Forbidden("Invalid or expired download link")
    return _file_response(storage.get(file_path), original_filename(file_path))


@router.post("/submissions/{submission_id}/review", response_model=SubmissionResponse)
def review_submission(
    submission_id: int,
    body: ReviewRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Accept or reject a pending submission"""
    return lifecycle.review(
        db,
        submission_id,
        current_user,
        body.action,
        score=body.score,
        feedback=body.feedback,
    )


@router.post("/submissions/{submission_id}/grade", response_model=SubmissionResponse)
def grade_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    backend: GradingBackend = Depends(get_grading_backend),
):
    """Run the configured grading backend on a pending submission"""
    submission = lifecycle.get_submission(db, submission_id)
    if not lifecycle.is_reviewer(current_user, submission.challenge):
        raise Forbidden("Only the challenge creator or a judge can grade submissions")
    return lifecycle.auto_grade(db, submission_id, backend)


@router.post(
    "/submissions/{submission_id}/feedback",
    response_model=FeedbackResponse,
    status_code=201,
)
def leave_feedback(
    submission_id: int,
    body: FeedbackCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add free-form feedback to a submission"""
    return lifecycle.add_feedback(
        db, submission_id, current_user, body.comment, body.rating
    )
