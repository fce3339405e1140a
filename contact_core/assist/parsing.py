import json
import re
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from contact_core.domain.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def extract_json_object(content: str) -> Dict[str, Any]:
    """从模型回复中取出 JSON 对象，兼容 ```json 代码块以及前后多余文字。"""

    text = (content or "").strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValidationError(code="INVALID_ASSIST_RESPONSE", message="response contains no JSON object")
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise ValidationError(code="INVALID_ASSIST_RESPONSE", message=f"response is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ValidationError(code="INVALID_ASSIST_RESPONSE", message="response JSON is not an object")
    return data


def parse_model_output(content: str, schema: Type[M]) -> M:
    data = extract_json_object(content)
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(code="INVALID_ASSIST_RESPONSE", message=str(e))
