import enum
import uuid
from sqlalchemy import BigInteger, Column, String, Text
from sqlalchemy.orm import DeclarativeBase

# Match migration 001: ids are String(36) uuid4 strings
ID_TYPE = String(36)


class Base(DeclarativeBase):
    pass


def new_photo_id() -> str:
    # uuid4 draws from os.urandom: random, not sequential, collision-free in practice
    return str(uuid.uuid4())


class MediaType(str, enum.Enum):
    image = "image"
    video = "video"


class Photo(Base):
    __tablename__ = "photos"
    id = Column(ID_TYPE, primary_key=True, default=new_photo_id)
    url = Column(Text, nullable=False)
    created_at = Column(BigInteger, nullable=False, index=True)  # epoch milliseconds, server clock
    type = Column(String(16), nullable=False)  # image | video
