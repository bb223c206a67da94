from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CssSettings(_Model):
    validate_: bool = Field(default=True, alias="validate")
    completion: dict = {}
    hover: dict = {}


class HtmlFormatSettings(_Model):
    enable: bool = True
    unformatted: str = ""
    content_unformatted: str = ""


class HtmlValidateSettings(_Model):
    scripts: bool = True
    styles: bool = True


class HtmlSuggestSettings(_Model):
    attribute_default_value: Literal["empty", "singlequotes", "doublequotes"] = "doublequotes"


class HtmlHoverSettings(_Model):
    documentation: bool = True
    references: bool = True


class HtmlSettings(_Model):
    format: HtmlFormatSettings = HtmlFormatSettings()
    validate_: HtmlValidateSettings = Field(default=HtmlValidateSettings(), alias="validate")
    suggest: HtmlSuggestSettings = HtmlSuggestSettings()
    hover: HtmlHoverSettings = HtmlHoverSettings()


class JavascriptFormatSettings(_Model):
    enable: bool = True
    semicolons: Literal["ignore", "insert", "remove"] = "ignore"


class JavascriptSettings(_Model):
    format: JavascriptFormatSettings = JavascriptFormatSettings()


class Settings(_Model):
    css: CssSettings = CssSettings()
    html: HtmlSettings = HtmlSettings()
    javascript: JavascriptSettings = JavascriptSettings()


class ServerOptions(_Model):
    folding_range_limit: Optional[int] = None
    cache_max_entries: int = 10
    cache_cleanup_interval: float = 60.0
    data_paths: List[str] = []
    log_level: str = "WARNING"


class MarkupDescription(_Model):
    kind: Literal["plaintext", "markdown"] = "plaintext"
    value: str = ""


Description = Union[str, MarkupDescription]


class ReferenceDTO(_Model):
    name: str
    url: str


class ValueData(_Model):
    name: str
    description: Optional[Description] = None
    references: List[ReferenceDTO] = []


class AttributeData(_Model):
    name: str
    description: Optional[Description] = None
    value_set: Optional[str] = None
    values: List[ValueData] = []
    references: List[ReferenceDTO] = []


class TagData(_Model):
    name: str
    description: Optional[Description] = None
    attributes: List[AttributeData] = []
    references: List[ReferenceDTO] = []
    void: bool = False


class ValueSet(_Model):
    name: str
    values: List[ValueData] = []


class HTMLDataV1(_Model):
    version: float = 1
    tags: List[TagData] = []
    global_attributes: List[AttributeData] = []
    value_sets: List[ValueSet] = []


class PositionDTO(_Model):
    line: int
    character: int


class TextDocumentIdentifierDTO(_Model):
    uri: str


class AutoInsertRequest(_Model):
    kind: Literal["autoClose", "autoQuote"]
    position: PositionDTO
    text_document: TextDocumentIdentifierDTO


class CustomDataChangedNotification(_Model):
    data_paths: List[str] = []


class RangeDTO(_Model):
    start: PositionDTO
    end: PositionDTO


class SemanticTokenRequest(_Model):
    text_document: TextDocumentIdentifierDTO
    ranges: Optional[List[RangeDTO]] = None


class InitializationOptions(_Model):
    data_paths: List[str] = []
    settings: dict = {}
    provide_formatter: bool = True
