"""文本理解流程的提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取模板，模板使用 string.Template
的 $name 占位符，避免与提示词中的 JSON 花括号冲突。
"""

from pathlib import Path
from string import Template


PROMPTS_DIR = Path(__file__).resolve().parent


def load_prompt(name: str, locale: str = "zh") -> Template:
    """根据流程名和语言加载提示词模板，例如 name="find_contacts"。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return Template(fname.read_text(encoding="utf-8"))
