"""
Catalog router - read-only content listings and catalog reload
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query
from loguru import logger

from config.settings import settings
from fastapi_core.exceptions import NotFoundError
from fastapi_core.shared_services import CATALOG_SERVICE, register_shared_service
from fastapi_models import CatalogListResponse, CatalogReloadResponse
from gamedata.catalog import Catalog
from .dependencies import CatalogDep

router = APIRouter()


def _dump(entry) -> Dict[str, Any]:
    return entry.model_dump(mode='json')


def _require_table(catalog: Catalog, kind: str) -> Dict[str, Any]:
    try:
        return catalog.table(kind)
    except KeyError:
        raise NotFoundError(f"Unknown catalog table: {kind}", {'kind': kind})


@router.get("/catalog", response_model=CatalogReloadResponse)
def describe_catalog(catalog: CatalogDep):
    """Entry counts per table of the loaded catalog"""
    return CatalogReloadResponse(name=catalog.name, tables=catalog.describe())


@router.get("/catalog/options", response_model=CatalogListResponse)
def resolve_option_reference(
    catalog: CatalogDep,
    ref: str = Query(..., description="Option reference, e.g. spells:phb:wizard:0 or items:martial-weapon"),
):
    """Expand a static option reference into catalog slugs (no character filtering)"""
    try:
        slugs = catalog.resolve_options(ref)
    except ValueError as e:
        raise NotFoundError(str(e), {'ref': ref})
    return CatalogListResponse(kind=ref, count=len(slugs), entries=[{'slug': slug} for slug in slugs])


@router.get("/catalog/{kind}", response_model=CatalogListResponse)
def list_catalog(
    kind: str,
    catalog: CatalogDep,
    type: Optional[str] = Query(None, description="Filter proficiencies by type"),
    category: Optional[str] = Query(None, description="Filter items by category"),
):
    """
    List a catalog table: races, subraces, classes, subclasses, backgrounds,
    feats, proficiencies, languages, spells, items, optional_features.
    """
    entries = list(_require_table(catalog, kind).values())
    if type:
        entries = [e for e in entries if getattr(e, 'type', None) == type]
    if category:
        entries = [e for e in entries if category in getattr(e, 'categories', [])]
    return CatalogListResponse(kind=kind, count=len(entries), entries=[_dump(e) for e in entries])


@router.get("/catalog/{kind}/{slug}")
def get_catalog_entry(kind: str, slug: str, catalog: CatalogDep) -> Dict[str, Any]:
    entry = _require_table(catalog, kind).get(slug)
    if entry is None:
        raise NotFoundError(f"{slug} not found in {kind}", {'kind': kind, 'slug': slug})
    return _dump(entry)


@router.post("/catalog/reload", response_model=CatalogReloadResponse)
def reload_catalog():
    """
    Load the catalog file again and make it the shared catalog.

    Existing characters keep the content they were built with; use
    GET /characters/{id}/validate to find references the new content lacks.
    """
    catalog = Catalog.load(settings.catalog_path)
    register_shared_service(CATALOG_SERVICE, catalog)
    logger.info(f"Reloaded catalog {catalog.name!r} from {settings.catalog_path}")
    return CatalogReloadResponse(name=catalog.name, tables=catalog.describe())
