"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from homematch.api import couples, ops
from homematch.api.errors import install_error_handlers
from homematch.domain.couples import sockets as couples_sockets
from homematch.domain.couples.cache import CouplesCache
from homematch.domain.couples.gateway import PostgresCouplesGateway
from homematch.domain.couples.service import CouplesService, set_service
from homematch.infra import postgres
from homematch.obs import init as obs_init
from homematch.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	cache = CouplesCache(settings)
	set_service(CouplesService(PostgresCouplesGateway(), cache, config=settings))
	try:
		yield
	finally:
		cache.clear()
		set_service(None)
		await postgres.close_pool()


app = FastAPI(
	title="HomeMatch Couples",
	lifespan=lifespan,
	docs_url=None if settings.is_prod() else "/docs",
	redoc_url=None,
)
install_error_handlers(app)

allow_origins = ["http://localhost:3000"] if settings.is_dev() else ["https://app.homematch.example"]
app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

app.include_router(ops.router)
app.include_router(couples.router)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
couples_namespace = couples_sockets.CouplesNamespace()
couples_sockets.set_namespace(couples_namespace)
sio.register_namespace(couples_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)
