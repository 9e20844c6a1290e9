"""Tests for link request/response schemas."""
import pytest
from pydantic import ValidationError

from schemas.link import LinkCreate, LinkUpdate


class TestLinkCreate:
    """Tests for LinkCreate validation."""

    def test__link_create__keeps_url_as_submitted(self) -> None:
        data = LinkCreate(url="  HTTPS://Example.com/Page/  ")
        assert data.url == "HTTPS://Example.com/Page/"

    def test__link_create__missing_url(self) -> None:
        with pytest.raises(ValidationError, match="URL is required"):
            LinkCreate(url="   ")

    def test__link_create__non_string_url(self) -> None:
        with pytest.raises(ValidationError, match="URL is required"):
            LinkCreate(url=None)

    def test__link_create__url_too_long(self) -> None:
        with pytest.raises(ValidationError, match="at most 2048 characters"):
            LinkCreate(url="https://example.com/" + "a" * 2048)

    def test__link_create__invalid_url(self) -> None:
        with pytest.raises(ValidationError, match="Invalid URL format"):
            LinkCreate(url="ftp://example.com")

    def test__link_create__blank_title_is_none(self) -> None:
        assert LinkCreate(url="https://example.com", title="   ").title is None

    def test__link_create__rating_out_of_range(self) -> None:
        with pytest.raises(ValidationError, match="between 1 and 5"):
            LinkCreate(url="https://example.com", rating=6)


class TestLinkUpdate:
    """Tests for LinkUpdate validation."""

    def test__link_update__truncates_title(self) -> None:
        data = LinkUpdate(title="t" * 600)
        assert data.title == "t" * 500

    def test__link_update__description_too_long(self) -> None:
        with pytest.raises(ValidationError):
            LinkUpdate(ai_description="d" * 281)

    def test__link_update__explicit_null_rating_is_set(self) -> None:
        data = LinkUpdate(rating=None)
        assert data.model_dump(exclude_unset=True) == {"rating": None}
