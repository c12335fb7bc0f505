"""Request bodies. Every body is sanitized before field validation runs."""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from whatsgate.domain.sanitize import sanitize


class SanitizedModel(BaseModel):
    @model_validator(mode="before")
    @classmethod
    def _sanitize(cls, data: Any) -> Any:
        return sanitize(data)


class AuthRequest(SanitizedModel):
    contrasena: str = Field(min_length=1)


class SendMessageRequest(SanitizedModel):
    destino: str = Field(min_length=7, max_length=100)
    mensaje: str = Field(min_length=1, max_length=4000)
    rutaArchivo: str | None = Field(default=None, max_length=500)
    esGrupo: bool = False
