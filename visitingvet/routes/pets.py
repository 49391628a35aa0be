import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import require_roles
from ..constants import ROLE_PET_OWNER
from ..database import get_db
from ..models import Pet, User
from ..schemas import MessageResponse, PetCreate, PetResponse, PetUpdate
from ..services.usage_tracking_service import log_usage
from ..utils.sanitization import sanitize_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pets", tags=["Pets"])


def _get_own_pet(db: Session, pet_id: int, user: User) -> Pet:
    pet = db.query(Pet).filter(Pet.id == pet_id).first()
    if not pet:
        raise HTTPException(status_code=404, detail="Pet not found")
    if pet.owner_id != user.id:
        logger.warning(f"🚫 User {user.id} tried to access pet {pet_id}")
        raise HTTPException(status_code=403, detail="You can only access your own pets")
    return pet


@router.post("", response_model=PetResponse, status_code=201)
async def create_pet(
    data: PetCreate,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    db: Session = Depends(get_db),
):
    pet = Pet(owner_id=current_user.id, **sanitize_dict(data.model_dump()))
    db.add(pet)
    db.commit()
    db.refresh(pet)
    log_usage(db, "PET_CREATED", current_user.id, {"pet_id": pet.id, "species": pet.species})
    logger.info(f"✅ Pet {pet.id} added for user {current_user.id}")
    return pet


@router.get("", response_model=list[PetResponse])
async def list_pets(
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    db: Session = Depends(get_db),
):
    return db.query(Pet).filter(Pet.owner_id == current_user.id).order_by(Pet.name.asc()).all()


@router.get("/{pet_id}", response_model=PetResponse)
async def get_pet(
    pet_id: int,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    db: Session = Depends(get_db),
):
    return _get_own_pet(db, pet_id, current_user)


@router.put("/{pet_id}", response_model=PetResponse)
async def update_pet(
    pet_id: int,
    data: PetUpdate,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    db: Session = Depends(get_db),
):
    pet = _get_own_pet(db, pet_id, current_user)
    for field, value in sanitize_dict(data.model_dump(exclude_unset=True)).items():
        setattr(pet, field, value)
    db.commit()
    db.refresh(pet)
    return pet


@router.delete("/{pet_id}", response_model=MessageResponse)
async def delete_pet(
    pet_id: int,
    current_user: User = Depends(require_roles(ROLE_PET_OWNER)),
    db: Session = Depends(get_db),
):
    pet = _get_own_pet(db, pet_id, current_user)
    db.delete(pet)
    db.commit()
    logger.info(f"🗑️ Pet {pet_id} removed by user {current_user.id}")
    return {"message": "Pet deleted"}
