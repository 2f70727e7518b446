from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Header, Query, Response, status

from lrems_backend.api.conditional import FreshnessDirective, conditional_response
from lrems_backend.api.dependencies import get_book_service, get_current_principal
from lrems_backend.interface.books import BookCreate, BookGet, BookQuery, BookUpdate, RemarkCreate, RemarkGet
from lrems_backend.permissions.principal import Principal
from lrems_backend.services.book_service import BookService

books_router = APIRouter()


@books_router.get("")
async def list_books(
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[BookService, Depends(get_book_service)],
    params: Annotated[BookQuery, Query()],
    if_none_match: Annotated[Optional[str], Header()] = None,
):
    result = await service.list_books(principal, params)
    return conditional_response(result, if_none_match, FreshnessDirective.from_settings())


@books_router.get("/{book_code}")
async def get_book(
    book_code: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[BookService, Depends(get_book_service)],
    if_none_match: Annotated[Optional[str], Header()] = None,
):
    book = service.get_book(principal, book_code)
    return conditional_response(book, if_none_match, FreshnessDirective.from_settings())


@books_router.post("", response_model=BookGet, status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: BookCreate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[BookService, Depends(get_book_service)],
):
    return await service.create_book(principal, payload)


@books_router.patch("/{book_code}", response_model=BookGet)
async def update_book(
    book_code: str,
    payload: BookUpdate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[BookService, Depends(get_book_service)],
):
    return await service.update_book(principal, book_code, payload)


@books_router.delete("/{book_code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(
    book_code: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[BookService, Depends(get_book_service)],
):
    await service.delete_book(principal, book_code)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@books_router.post("/{book_code}/remarks", response_model=RemarkGet, status_code=status.HTTP_201_CREATED)
async def add_remark(
    book_code: str,
    payload: RemarkCreate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[BookService, Depends(get_book_service)],
):
    return await service.add_remark(principal, book_code, payload)


@books_router.delete("/{book_code}/remarks/{remark_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_remark(
    book_code: str,
    remark_id: int,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[BookService, Depends(get_book_service)],
):
    await service.delete_remark(principal, book_code, remark_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
