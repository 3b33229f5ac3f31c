"""
Localization pass (render stage 2).

The expanded MJML may contain inline localization markup:

    <Trans>Hello {first_name}, welcome back!</Trans>
    <Plural value={count} one="# new message" other="# new messages" />
    <NumberFormat value={total} />
    <DateFormat value={sent_at} format="long" />

This stage generates a template from that markup, evaluates it against the
render context and a translation catalog for the target locale, and returns
plain MJML. The <mj-style> body is cut out before generation (CSS braces
are not template syntax) and spliced back in afterwards.

Each call builds its own sandboxed environment and catalog, so concurrent
renders for different documents never share evaluation state.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from babel.dates import format_date as babel_format_date
from babel.numbers import format_decimal
from babel.support import NullTranslations, Translations
from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment
from markupsafe import Markup

from mjpreview.contexts.rendering.exceptions import LocalizationEvaluationError
from mjpreview.utils.html import unescape_apostrophes

STYLE_BLOCK = re.compile(r"(<mj-style\b[^>]*(?<!/)>)(.*?)(</mj-style>)", re.DOTALL)
STYLE_CLOSE = "</mj-style>"

LOCALIZATION_TAG = re.compile(
    r"<Trans\b[^>]*>(?P<trans>.*?)</Trans>"
    r"|<(?P<tag>Plural|NumberFormat|DateFormat)\b(?P<attrs>[^>]*?)/>",
    re.DOTALL,
)
ATTRIBUTE = re.compile(r'(\w+)\s*=\s*(?:"([^"]*)"|\{([^}]*)\})')
PLACEHOLDER = re.compile(r"\{\s*([A-Za-z_]\w*)\s*\}")

MESSAGES_DOMAIN = "messages"


class LocalizationStage(Protocol):
    """Pluggable translation + evaluation step."""

    def translate(self, text: str, locale: str, context_data: Mapping[str, Any]) -> str:
        """
        Translate localization markup in text into static markup.

        Raises:
            LocalizationEvaluationError: If generation or evaluation fails
        """
        ...


@dataclass(frozen=True)
class StyleBlock:
    """The first <mj-style> block of a document, split into tag and body."""

    open_tag: str
    body: str


# =============================================================================
# Text preparation
# =============================================================================


def extract_style_block(text: str) -> Tuple[Optional[StyleBlock], str]:
    """
    Cut the body of the first <mj-style> block out of text.

    The tag pair is kept in place (emptied) so the body can be restored later.

    Returns:
        (StyleBlock or None, text with an empty style tag pair)
    """
    match = STYLE_BLOCK.search(text)
    if match is None:
        return None, text

    block = StyleBlock(open_tag=match.group(1), body=match.group(2))
    stripped = text[: match.start()] + block.open_tag + STYLE_CLOSE + text[match.end() :]
    return block, stripped


def restore_style_block(text: str, block: Optional[StyleBlock]) -> str:
    """Splice a previously extracted style body back into its empty tag pair."""
    if block is None:
        return text
    empty = block.open_tag + STYLE_CLOSE
    return text.replace(empty, block.open_tag + block.body + STYLE_CLOSE, 1)


# =============================================================================
# Code generation
# =============================================================================


def _parse_attributes(attrs: str) -> Dict[str, Tuple[str, bool]]:
    """Map attribute name -> (value, is_expression)."""
    parsed = {}
    for name, literal, expression in ATTRIBUTE.findall(attrs):
        if expression:
            parsed[name] = (expression.strip(), True)
        else:
            parsed[name] = (literal, False)
    return parsed


def _to_message(text: str, plural: bool = False) -> Tuple[str, List[str]]:
    """
    Convert authored message text into a gettext message id.

    Whitespace runs collapse to one space, {name} placeholders become
    %(name)s, and in plural forms # becomes the count.

    Returns:
        (message id, placeholder names in order of first use)
    """
    message = " ".join(text.split()).replace("%", "%%")
    names: List[str] = []

    def placeholder(match):
        name = match.group(1)
        if name not in names:
            names.append(name)
        return f"%({name})s"

    message = PLACEHOLDER.sub(placeholder, message)
    if plural:
        message = message.replace("#", "%(num)s")
    return message, names


def _keyword_arguments(names: List[str]) -> str:
    return "".join(f", {name}={name}" for name in names if name != "num")


def _required(attrs: Dict[str, Tuple[str, bool]], name: str, tag: str) -> Tuple[str, bool]:
    if name not in attrs:
        raise ValueError(f"<{tag}> requires a '{name}' attribute")
    return attrs[name]


@dataclass
class GeneratedTemplate:
    """Template source generated from localization markup plus its constant tables."""

    source: str
    literals: List[Markup]
    messages: List[str]


def generate_template(text: str) -> GeneratedTemplate:
    """
    Generate template source from text containing localization markup.

    Literal markup is referenced from a constant table rather than pasted
    into the source, so braces or percent signs in the MJML are never
    interpreted.

    Raises:
        ValueError: If a localization tag is missing a required attribute
    """
    parts: List[str] = []
    literals: List[Markup] = []
    messages: List[str] = []

    def literal(chunk: str) -> None:
        if chunk:
            literals.append(Markup(chunk))
            parts.append(f"{{{{ _literals[{len(literals) - 1}] }}}}")

    def message(msgid: str) -> str:
        messages.append(msgid)
        return f"_messages[{len(messages) - 1}]"

    position = 0
    for match in LOCALIZATION_TAG.finditer(text):
        literal(text[position : match.start()])
        position = match.end()

        if match.group("trans") is not None:
            msgid, names = _to_message(match.group("trans"))
            parts.append(f"{{{{ gettext({message(msgid)}{_keyword_arguments(names)}) }}}}")
            continue

        tag = match.group("tag")
        attrs = _parse_attributes(match.group("attrs"))
        value, is_expression = _required(attrs, "value", tag)
        value_source = value if is_expression else repr(value)

        if tag == "Plural":
            singular, names = _to_message(attrs.get("one", _required(attrs, "other", tag))[0], True)
            plural, plural_names = _to_message(_required(attrs, "other", tag)[0], True)
            names += [name for name in plural_names if name not in names]
            parts.append(
                f"{{{{ ngettext({message(singular)}, {message(plural)}, ({value_source})"
                f"{_keyword_arguments(names)}) }}}}"
            )
        else:
            fmt = attrs.get("format", ("", False))[0]
            function = "format_number" if tag == "NumberFormat" else "format_date"
            parts.append(f"{{{{ {function}(({value_source}), {repr(fmt) if fmt else 'None'}) }}}}")

    literal(text[position:])
    return GeneratedTemplate(source="".join(parts), literals=literals, messages=messages)


# =============================================================================
# Evaluation
# =============================================================================


def load_translations(locale: str, locale_dir: Optional[Path]):
    """
    Load the gettext catalog for locale from locale_dir.

    Catalogs use the standard layout <locale_dir>/<locale>/LC_MESSAGES/messages.mo.
    Missing catalogs fall back to identity translations.
    """
    if locale_dir is None:
        return NullTranslations()
    return Translations.load(dirname=str(locale_dir), locales=[locale], domain=MESSAGES_DOMAIN)


def _locale_formatters(locale: str) -> Dict[str, Any]:
    def format_number(value, fmt=None):
        return format_decimal(value, format=fmt, locale=locale)

    def format_date(value, fmt=None):
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if isinstance(value, datetime):
            value = value.date()
        if not isinstance(value, date):
            raise TypeError(f"DateFormat expects a date, got {type(value).__name__}")
        return babel_format_date(value, format=fmt or "medium", locale=locale)

    return {"format_number": format_number, "format_date": format_date}


class JinjaLocalizationStage:
    """
    Default localization stage.

    Generates a template from the localization markup and evaluates it in a
    fresh SandboxedEnvironment with the jinja2 i18n extension.

    Args:
        locale_dir: Directory holding compiled gettext catalogs (optional)
    """

    def __init__(self, locale_dir: Optional[Path] = None):
        self.locale_dir = Path(locale_dir) if locale_dir else None

    def translate(self, text: str, locale: str, context_data: Mapping[str, Any]) -> str:
        if LOCALIZATION_TAG.search(text) is None:
            return text

        try:
            generated = generate_template(text)
            env = SandboxedEnvironment(
                autoescape=True,
                undefined=StrictUndefined,
                extensions=["jinja2.ext.i18n"],
            )
            env.install_gettext_translations(
                load_translations(locale, self.locale_dir), newstyle=True
            )
            env.globals.update(_locale_formatters(locale))

            template = env.from_string(generated.source)
            return template.render(
                {
                    **context_data,
                    "locale": locale,
                    "_literals": generated.literals,
                    "_messages": generated.messages,
                }
            )
        except Exception as e:
            raise LocalizationEvaluationError(str(e), original_error=e) from e


def localize(
    expanded_text: str,
    locale: str,
    context_data: Mapping[str, Any],
    stage: LocalizationStage,
) -> str:
    """
    Run the full localization pass over expanded template output.

    Steps: cut out the style body, turn escaped apostrophes back into
    literal quotes, translate, splice the style body back in.

    Raises:
        LocalizationEvaluationError: If the stage fails for any reason
    """
    style, styleless = extract_style_block(expanded_text)
    styleless = unescape_apostrophes(styleless)

    try:
        translated = stage.translate(styleless, locale, context_data)
    except LocalizationEvaluationError:
        raise
    except Exception as e:
        raise LocalizationEvaluationError(str(e), original_error=e) from e

    return restore_style_block(translated, style)
