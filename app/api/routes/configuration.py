import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_permission
from app.db.database import get_db
from app.models.configuration import CONFIGURATION_ID, Configuration
from app.models.user import User
from app.schemas.configuration import ConfigurationOut, ConfigurationSet

router = APIRouter(prefix="/configuration", tags=["Configuration"])

logger = logging.getLogger(__name__)


def get_or_create_configuration(db: Session) -> Configuration:
    configuration = db.get(Configuration, CONFIGURATION_ID)
    if configuration is None:
        configuration = Configuration(id=CONFIGURATION_ID, tax=0)
        db.add(configuration)
        db.commit()
        db.refresh(configuration)
    return configuration


@router.get("", response_model=ConfigurationOut)
def get_configuration(
    _: User = Depends(require_permission("configuration:view")),
    db: Session = Depends(get_db),
):
    return get_or_create_configuration(db)


@router.post("", response_model=ConfigurationOut)
def set_configuration(
    payload: ConfigurationSet,
    _: User = Depends(require_permission("configuration:manage")),
    db: Session = Depends(get_db),
):
    configuration = get_or_create_configuration(db)
    configuration.tax = payload.tax
    db.commit()
    db.refresh(configuration)
    logger.info(f"Tax set to {configuration.tax}%")
    return configuration
