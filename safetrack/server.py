# safetrack/server.py
"""
FastAPI server for the safetrack CLI: manage learned network fingerprints.
"""

from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request
from starlette.responses import JSONResponse

from safetrack.analysis.classifier import FingerprintClassifier
from safetrack.analysis.config import ClassifierConfig
from safetrack.analysis.types import Classification, NetworkFingerprint, now_ms
from safetrack.exceptions import InvalidInputError, PersistenceError
from safetrack.storage.dao import FingerprintDAO
from safetrack.utils.log import get_logger
from safetrack.utils.validate import ClassifyRequest, FingerprintOut, LocationFix, NetworkObservation

logger = get_logger(__name__)


def _to_out(fp: NetworkFingerprint) -> FingerprintOut:
    data = asdict(fp)
    data["classification"] = fp.classification.value
    return FingerprintOut(**data)


def create_app(profile: str, db_path: str | None = None) -> FastAPI:
    """
    Build a FastAPI instance bound to a specific profile.
    """
    app = FastAPI()
    app.state.profile = profile
    app.state.dao = FingerprintDAO(db_path or f"safetrack_{profile}.sqlite")

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence failure: %s", exc.message)
        return JSONResponse(status_code=503, content={"detail": exc.message})

    @app.exception_handler(InvalidInputError)
    async def invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.message})

    @app.get("/api/status", response_class=JSONResponse)
    async def status() -> JSONResponse:
        return JSONResponse(status_code=200, content={"status": "ok"})

    @app.get("/api/profile", response_class=JSONResponse)
    async def get_profile(request: Request) -> JSONResponse:
        return JSONResponse(status_code=200, content={"profile": request.app.state.profile})

    @app.get("/api/fingerprints", response_model=list[FingerprintOut])
    async def list_fingerprints(request: Request):
        dao: FingerprintDAO = request.app.state.dao
        return [_to_out(fp) for fp in dao.get_all()]

    @app.get("/api/fingerprints/{identifier}", response_model=FingerprintOut)
    async def get_fingerprint(request: Request, identifier: str):
        dao: FingerprintDAO = request.app.state.dao
        fp = dao.get(identifier)
        if fp is None:
            raise HTTPException(status_code=404, detail=f"Unknown network {identifier}")
        return _to_out(fp)

    @app.post("/api/fingerprints/{identifier}/classify", response_model=FingerprintOut)
    async def classify_fingerprint(request: Request, identifier: str, body: ClassifyRequest):
        """
        Manually classify a network, optionally with an anchor coordinate.
        """
        dao: FingerprintDAO = request.app.state.dao
        try:
            network = NetworkObservation(
                identifier=identifier, name=body.name or identifier, is_bluetooth=body.is_bluetooth
            )
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        anchor = None
        if body.lat is not None and body.lon is not None:
            anchor = LocationFix(lat=body.lat, lon=body.lon, ts=now_ms())
        classifier = FingerprintClassifier(dao, ClassifierConfig.default())
        fp = classifier.classify(network, Classification(body.classification), anchor)
        return _to_out(fp)

    @app.delete("/api/fingerprints/{identifier}", response_class=JSONResponse)
    async def delete_fingerprint(request: Request, identifier: str) -> JSONResponse:
        dao: FingerprintDAO = request.app.state.dao
        if not dao.delete(identifier):
            raise HTTPException(status_code=404, detail=f"Unknown network {identifier}")
        logger.info("Deleted network %s", identifier)
        return JSONResponse(status_code=200, content={"deleted": identifier})

    return app
