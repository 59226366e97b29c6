"""Templating utilities for package renderers."""

from __future__ import annotations

from typing import Any, Dict

from jinja2 import BaseLoader, Environment

ENV = Environment(
    loader=BaseLoader(),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    variable_start_string="[[",
    variable_end_string="]]",
)

CHART_TABLE = """{% macro chart_table(chart) -%}
_[[ chart.kind ]] chart: [[ chart.title or 'Distribution' ]]_

| Category | Value |
| --- | --- |
{% for label, value in chart.rows %}
| [[ label ]] | [[ value ]] |
{% endfor %}
{%- endmacro %}"""

MARKDOWN_TEMPLATE = ENV.from_string(
    CHART_TABLE
    + """
# [[ title ]]

_Request: [[ prompt ]] · [[ slides | length ]] slides · [[ sources | length ]] vetted sources_

{% for slide in slides %}
## [[ slide.number ]]. [[ slide.title ]]

{% if slide.subtitle %}
> [[ slide.subtitle ]]

{% endif %}
{% for bullet in slide.bullets %}
- [[ bullet ]]
{% endfor %}

{% if slide.chart %}
[[ chart_table(slide.chart) ]]

{% endif %}
{% for page_title, page_text in slide.pages if page_text %}
{% if not loop.first %}
### [[ page_title ]]

{% endif %}
[[ page_text ]]

{% endfor %}
{% endfor %}
{% if appendix_charts %}
## Appendix: Charts

{% for chart in appendix_charts %}
[[ chart_table(chart) ]]

{% endfor %}
{% endif %}
## Sources

{% for url in sources %}
[[ loop.index ]]. [[ url ]]
{% endfor %}
"""
)


def render_markdown(context: Dict[str, Any]) -> str:
    return MARKDOWN_TEMPLATE.render(**context).strip() + "\n"
