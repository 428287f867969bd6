"""
Content-type schema table.

Each heritage content type maps to a CMS custom post type and carries its own
set of optional custom fields with per-field length limits. The table below
is the single source for validation and for the generated pydantic models.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, create_model

from shared.errors import ValidationError

TITLE_MAX_LENGTH = 200


class ContentType(str, Enum):
    """Supported content types; the value is the CMS collection slug."""

    HERITAGE_SITE = "cagar_budaya"
    ART_FORM = "kesenian"
    NOTABLE_PERSON = "tokoh"
    COMMUNITY = "komunitas"
    TRADITION = "tradisi_lokal"

    @property
    def alias(self) -> str:
        return _ALIASES_BY_TYPE[self]

    @classmethod
    def from_slug(cls, slug: Optional[str]) -> "ContentType":
        """Resolve a CMS slug or public alias (``heritage-site``)."""
        if isinstance(slug, str):
            key = slug.strip().lower()
            for content_type in cls:
                if key in (content_type.value, content_type.alias):
                    return content_type
        raise ValidationError(
            f"Unsupported content type: {slug!r}",
            errors=[f"cptSlug: unsupported content type '{slug}'"],
            code="UNSUPPORTED_CONTENT_TYPE",
            context={"slug": slug},
        )


_ALIASES_BY_TYPE: Dict[ContentType, str] = {
    ContentType.HERITAGE_SITE: "heritage-site",
    ContentType.ART_FORM: "art-form",
    ContentType.NOTABLE_PERSON: "notable-person",
    ContentType.COMMUNITY: "community",
    ContentType.TRADITION: "tradition",
}


@dataclass(frozen=True)
class FieldSpec:
    name: str
    max_length: int
    required: bool = False


def _fields(*specs: Tuple[str, int]) -> Tuple[FieldSpec, ...]:
    return tuple(FieldSpec(name, length) for name, length in specs)


CONTENT_SCHEMAS: Dict[ContentType, Tuple[FieldSpec, ...]] = {
    ContentType.HERITAGE_SITE: _fields(
        ("lokasi", 500),
        ("nilai_sejarah", 2000),
        ("nilai_budaya", 2000),
        ("nilai_arsitektur", 2000),
        ("sumber_informasi", 1000),
        ("jenis_bangunan", 200),
        ("usia_bangunan", 100),
        ("kondisi_bangunan", 1000),
        ("jenis_situs", 200),
        ("luas_situs", 100),
        ("kondisi_situs", 1000),
        ("jenis_kawasan", 200),
        ("luas_kawasan", 100),
        ("kondisi_kawasan", 1000),
        ("jenis_benda", 200),
        ("deskripsi_benda", 2000),
        ("tahun_penemuan", 50),
        ("kondisi_benda", 1000),
        ("jenis_struktur", 200),
        ("deskripsi_struktur", 2000),
        ("tahun_dibangun", 50),
        ("kondisi_struktur", 1000),
        ("koordinat_gps", 100),
    ),
    ContentType.ART_FORM: _fields(
        ("daerah_asal", 100),
        ("jenis_kesenian", 100),
        ("deskripsi", 2000),
        ("link_youtube", 500),
    ),
    ContentType.NOTABLE_PERSON: _fields(
        ("tempat_lahir", 100),
        ("tanggal_lahir", 50),
        ("profesi", 100),
        ("kontribusi", 2000),
    ),
    ContentType.COMMUNITY: _fields(
        ("nama_ketua", 200),
        ("alamat", 500),
        ("kontak", 200),
        ("tahun_berdiri", 50),
        ("deskripsi", 2000),
        ("koordinat_gps", 100),
    ),
    ContentType.TRADITION: _fields(
        ("daerah_asal", 100),
        ("waktu_pelaksanaan", 200),
        ("deskripsi", 2000),
        ("makna", 2000),
        ("link_youtube", 500),
    ),
}

TITLE_FIELD = FieldSpec("title", TITLE_MAX_LENGTH, required=True)


def field_specs(content_type: ContentType) -> Tuple[FieldSpec, ...]:
    """All fields accepted for a content type, title first."""
    return (TITLE_FIELD,) + CONTENT_SCHEMAS[content_type]


def required_fields(content_type: ContentType) -> Tuple[str, ...]:
    return tuple(spec.name for spec in field_specs(content_type) if spec.required)


def _build_model(content_type: ContentType) -> Type[BaseModel]:
    definitions = {}
    for spec in field_specs(content_type):
        if spec.required:
            definitions[spec.name] = (str, Field(..., max_length=spec.max_length))
        else:
            definitions[spec.name] = (Optional[str], Field(default=None, max_length=spec.max_length))

    name = "".join(part.title() for part in content_type.alias.split("-")) + "Fields"
    return create_model(name, __config__=ConfigDict(extra="forbid"), **definitions)


CONTENT_MODELS: Dict[ContentType, Type[BaseModel]] = {
    content_type: _build_model(content_type) for content_type in ContentType
}


def content_model(content_type: ContentType) -> Type[BaseModel]:
    """Typed record for a content type (``extra="forbid"``)."""
    return CONTENT_MODELS[content_type]
