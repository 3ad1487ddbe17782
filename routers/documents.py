# Documents Router for Reachstakes
# Creator contract and tax-form records with signature tracking

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import List, Optional
import logging

from database.config import get_db
from database.models import User, BrandProfile, utcnow
from database.marketplace_models import (
    Document, Collaboration, DocumentTypeDB, DocumentStatusDB,
)
from schemas.marketplace import DocumentCreate, DocumentUpdate, DocumentResponse, MarkSignedRequest
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type, is_admin
from auth.dependencies import get_current_user
from config.app_config import FRONTEND_URL
from core.exceptions import NotFoundError, PermissionDeniedError, MarketplaceError
from services.notification_service import NotificationService, NotificationType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"])

TAX_FORM_TYPES = (DocumentTypeDB.W9, DocumentTypeDB.W8BEN)


def _get_own_document(db: Session, document_id: str, user: User) -> Document:
    document = db.query(Document).filter(Document.id == document_id).first()
    if not document:
        raise NotFoundError("Document not found")
    if document.user_id != user.id and not is_admin(user):
        raise PermissionDeniedError("You don't have access to this document")
    return document


# ============================================================================
# CRUD
# ============================================================================

@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR)),
    type: Optional[DocumentTypeDB] = Query(None),
    status_filter: Optional[DocumentStatusDB] = Query(None, alias="status"),
):
    query = db.query(Document).filter(Document.user_id == current_user.id)
    if type:
        query = query.filter(Document.type == type)
    if status_filter:
        query = query.filter(Document.status == status_filter)
    return query.order_by(desc(Document.created_at)).all()


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    data: DocumentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    if data.type in TAX_FORM_TYPES and not data.tax_year:
        raise MarketplaceError("Tax forms require a tax_year")

    document = Document(
        user_id=current_user.id,
        status=DocumentStatusDB.DRAFT,
        **data.model_dump(),
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    return document


@router.get("/campaign/{campaign_id}", response_model=List[DocumentResponse])
async def list_campaign_documents(
    campaign_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    return db.query(Document).filter(
        Document.user_id == current_user.id,
        Document.campaign_id == campaign_id
    ).order_by(desc(Document.created_at)).all()


@router.get("/tax/{year}", response_model=List[DocumentResponse])
async def list_tax_documents(
    year: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    """Tax forms and invoices for one tax year."""
    return db.query(Document).filter(
        Document.user_id == current_user.id,
        Document.tax_year == year,
        Document.type.in_(TAX_FORM_TYPES + (DocumentTypeDB.INVOICE,))
    ).order_by(desc(Document.created_at)).all()


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    return _get_own_document(db, document_id, current_user)


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: str,
    data: DocumentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    document = _get_own_document(db, document_id, current_user)
    if document.status == DocumentStatusDB.SIGNED:
        raise MarketplaceError("Signed documents cannot be edited")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(document, field, value)

    db.commit()
    db.refresh(document)
    return document


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    document = _get_own_document(db, document_id, current_user)
    db.delete(document)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# CONTRACTS & SIGNING
# ============================================================================

@router.post("/generate-contract/{collaboration_id}", response_model=DocumentResponse)
async def generate_contract(
    collaboration_id: str,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    """
    Create the contract record for one of the creator's collaborations.
    Returns the existing contract if one was already generated.
    """
    collab = db.query(Collaboration).filter(
        Collaboration.id == collaboration_id,
        Collaboration.creator_id == current_user.id
    ).first()
    if not collab:
        raise NotFoundError("Collaboration not found")

    existing = db.query(Document).filter(
        Document.user_id == current_user.id,
        Document.collaboration_id == collab.id,
        Document.type == DocumentTypeDB.CONTRACT
    ).first()
    if existing:
        return existing

    campaign = collab.campaign
    profile = db.query(BrandProfile).filter(BrandProfile.user_id == campaign.brand_id).first()
    company = profile.company_name if profile and profile.company_name else "Brand"

    document = Document(
        user_id=current_user.id,
        campaign_id=campaign.id,
        collaboration_id=collab.id,
        type=DocumentTypeDB.CONTRACT,
        title=f"Campaign Contract - {campaign.title}",
        description=f"Contract for {campaign.title} campaign with {company}",
        status=DocumentStatusDB.PENDING_SIGNATURE,
        content={
            "campaign_title": campaign.title,
            "brand": company,
            "creator": current_user.name,
            "agreed_price": collab.agreed_price or 0,
            "currency": campaign.currency,
            "deliverables": campaign.deliverables or [],
            "milestones": collab.milestones or [],
            "end_date": campaign.end_date.isoformat() if campaign.end_date else None,
        },
    )
    db.add(document)
    db.commit()
    db.refresh(document)

    response.status_code = status.HTTP_201_CREATED
    logger.info(f"Contract {document.id} generated for collaboration {collab.id}")
    return document


@router.post("/{document_id}/sign")
async def initiate_signing(
    document_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.CREATOR))
):
    """Move a document to Pending_Signature and hand back the signing page URL."""
    document = _get_own_document(db, document_id, current_user)
    if document.status == DocumentStatusDB.SIGNED:
        raise MarketplaceError("Document is already signed")

    document.status = DocumentStatusDB.PENDING_SIGNATURE
    db.commit()
    return {
        "document_id": document.id,
        "status": document.status.value,
        "signing_url": f"{FRONTEND_URL}/creator/documents/{document.id}/sign",
    }


@router.post("/{document_id}/mark-signed", response_model=DocumentResponse)
async def mark_signed(
    document_id: str,
    data: MarkSignedRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record a completed signature for the document owner or an admin."""
    document = _get_own_document(db, document_id, current_user)
    if document.status == DocumentStatusDB.SIGNED:
        raise MarketplaceError("Document is already signed")

    document.status = DocumentStatusDB.SIGNED
    document.signed_at = utcnow()
    document.signed_by_name = data.signed_by_name
    document.signed_file_url = data.signed_file_url
    document.signature_id = data.signature_id

    NotificationService(db).create(
        user_id=document.user_id,
        type=NotificationType.DOCUMENT_SIGNED,
        title="Document Signed",
        message=f"{document.title} was signed by {data.signed_by_name}.",
        action_url=f"/creator/documents/{document.id}",
        data={"document_id": document.id},
    )
    db.commit()
    db.refresh(document)
    return document
