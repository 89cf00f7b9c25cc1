"""Assertions for the Sail settings pages."""

from __future__ import annotations

import dataclasses as dc
import enum
import re
import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from playwright.sync_api import Locator, Page


class CastType(enum.StrEnum):
    """Value types a Sail setting can be cast to."""

    INTEGER = "integer"
    STRING = "string"
    BOOLEAN = "boolean"
    RANGE = "range"
    ARRAY = "array"
    FLOAT = "float"
    AB_TEST = "ab_test"
    CRON = "cron"
    OBJ_MODEL = "obj_model"
    DATE = "date"
    URI = "uri"
    THROTTLE = "throttle"
    LOCALES = "locales"
    SET = "set"


@dc.dataclass(frozen=True, slots=True)
class Setting:
    """The parts of a Sail setting shown on its edit card."""

    name: str
    cast_type: CastType | str
    group: str

    @property
    def boolean(self) -> bool:
        """Return ``True`` for boolean settings."""
        return self.cast_type == CastType.BOOLEAN

    @property
    def ab_test(self) -> bool:
        """Return ``True`` for A/B test settings."""
        return self.cast_type == CastType.AB_TEST

    @property
    def uses_toggle(self) -> bool:
        """Return ``True`` when the card renders a slider instead of an input."""
        return self.boolean or self.ab_test


_ACRONYM_BOUNDARY = re.compile(r"([A-Z\d]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")
_WORD_START = re.compile(r"\b(?<!['’`])[a-z]")


def titleize(word: str) -> str:
    """Return *word* as a human-readable title.

    >>> titleize("max_upload_size")
    'Max Upload Size'
    >>> titleize("owner_id")
    'Owner'
    >>> titleize("FeatureFlag")
    'Feature Flag'
    """
    snake = _ACRONYM_BOUNDARY.sub(r"\1_\2", word)
    snake = _WORD_BOUNDARY.sub(r"\1_\2", snake).replace("-", "_").lower()
    snake = snake.lstrip("_").removesuffix("_id")
    spaced = " ".join(snake.replace("_", " ").split())
    return _WORD_START.sub(lambda match: match.group().upper(), spaced)


class PageProbe(t.Protocol):
    """Content queries an assertion helper can make against a page."""

    def has_text(self, text: str) -> bool: ...

    def has_link(self, name: str) -> bool: ...

    def has_button(self, name: str) -> bool: ...

    def has_css(self, selector: str) -> bool: ...

    def has_field(self, locator: str) -> bool: ...


def _case_sensitive(text: str) -> re.Pattern[str]:
    # Playwright string matching ignores case; a flagless pattern does not.
    return re.compile(re.escape(text))


class PlaywrightPage:
    """Answer :class:`PageProbe` queries from a Playwright page.

    Each query waits up to *timeout* milliseconds for a visible match; when
    *timeout* is ``None`` the page's default timeout applies.
    """

    def __init__(self, page: Page, *, timeout: float | None = None) -> None:
        self.page = page
        self._timeout = timeout

    def _visible(self, locator: Locator) -> bool:
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        try:
            locator.first.wait_for(state="visible", timeout=self._timeout)
        except PlaywrightTimeoutError:
            return False
        return True

    def has_text(self, text: str) -> bool:
        return self._visible(self.page.get_by_text(_case_sensitive(text)))

    def has_link(self, name: str) -> bool:
        return self._visible(self.page.get_by_role("link", name=_case_sensitive(name)))

    def has_button(self, name: str) -> bool:
        """Match a button whose accessible name is exactly *name*."""
        return self._visible(self.page.get_by_role("button", name=name, exact=True))

    def has_css(self, selector: str) -> bool:
        return self._visible(self.page.locator(selector))

    def has_field(self, locator: str) -> bool:
        """Match a form field by id, name, placeholder or label."""
        quoted = locator.replace("\\", "\\\\").replace('"', '\\"')
        by_attribute = self.page.locator(
            f'input[id="{quoted}"], input[name="{quoted}"], '
            f'textarea[name="{quoted}"], select[name="{quoted}"], '
            f'[placeholder="{quoted}"]'
        )
        return self._visible(by_attribute.or_(self.page.get_by_label(locator)))


def _probe(page: PageProbe | Page) -> PageProbe:
    if all(hasattr(page, attr) for attr in ("has_text", "has_link", "has_field")):
        return t.cast("PageProbe", page)
    return PlaywrightPage(t.cast("Page", page))


def expect_setting(page: PageProbe | Page, setting: Setting) -> None:
    """Assert that the edit card for *setting* is fully rendered.

    The card must show the titleized name, the cast type, a link to the
    setting's group and a ``SAVE`` button. Boolean and A/B test settings
    render a ``.slider`` toggle; every other type renders a ``value`` field.

    Raises
    ------
    AssertionError
        Naming the first missing element.
    """
    probe = _probe(page)
    title = titleize(setting.name)
    cast_type = str(setting.cast_type)

    if not probe.has_text(title):
        msg = f"expected page to have text {title!r}"
        raise AssertionError(msg)
    if not probe.has_text(cast_type):
        msg = f"expected page to have text {cast_type!r}"
        raise AssertionError(msg)
    if not probe.has_link(setting.group):
        msg = f"expected page to have link {setting.group!r}"
        raise AssertionError(msg)
    if not probe.has_button("SAVE"):
        msg = "expected page to have button 'SAVE'"
        raise AssertionError(msg)

    if setting.uses_toggle:
        if not probe.has_css(".slider"):
            msg = f"expected page to have css '.slider' for {cast_type} setting"
            raise AssertionError(msg)
    elif not probe.has_field("value"):
        msg = f"expected page to have field 'value' for {cast_type} setting"
        raise AssertionError(msg)
