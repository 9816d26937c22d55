from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse, Response

from storefront.pipeline.context import RequestDescriptor, ResponseDescriptor
from storefront.pipeline.executor import Pipeline

router = APIRouter(tags=["gateway"])

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


async def to_descriptor(request: Request) -> RequestDescriptor:
    return RequestDescriptor(
        method=request.method,
        path=request.url.path,
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=await request.body(),
    )


def to_response(descriptor: ResponseDescriptor) -> Response:
    body = descriptor.body
    if body is None or descriptor.status_code == 204:
        return Response(status_code=descriptor.status_code, headers=descriptor.headers)
    if isinstance(body, (bytes, str)):
        return Response(
            content=body,
            status_code=descriptor.status_code,
            headers=descriptor.headers,
            media_type="text/plain; charset=utf-8" if isinstance(body, str) else None,
        )
    return JSONResponse(
        content=jsonable_encoder(body),
        status_code=descriptor.status_code,
        headers=descriptor.headers,
    )


@router.api_route("/{path:path}", methods=METHODS, include_in_schema=False)
async def gateway(request: Request) -> Response:
    pipeline: Pipeline = request.app.state.pipeline
    descriptor = await pipeline.handle(await to_descriptor(request))
    return to_response(descriptor)
