import os

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.fastapi import GraphQLRouter

from wildenergy.core.conversions import normalize_qr_code
from wildenergy.core.logging_config import get_logger, setup_logging
from wildenergy.db.postgresql import get_db
from wildenergy.graphql.context import build_context
from wildenergy.graphql.schema import schema
from wildenergy.models import Registration
from wildenergy.services.qr_image_service import QrImageService

setup_logging()
logger = get_logger("main")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(title="Wild Energy")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

graphql_app = GraphQLRouter(
    schema=schema,
    context_getter=build_context,
    graphql_ide="graphiql"
)
app.include_router(graphql_app, prefix="/graphql")

qr_image_service = QrImageService()


@app.get("/registrations/{qr_code}/qr.png")
async def registration_qr_image(qr_code: str, db: AsyncSession = Depends(get_db)) -> Response:
    """PNG rendering of a registration QR code"""
    token = normalize_qr_code(qr_code)
    if token is None:
        raise HTTPException(status_code=404, detail="QR code not found")

    result = await db.execute(select(Registration.id).where(Registration.qr_code == token))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="QR code not found")

    return Response(content=qr_image_service.render_png(token), media_type="image/png")


logger.info("Wild Energy API initialised")
