# seo_scout/report/json_report.py

"""
Генерация JSON-отчёта для проекта SEOScout.

Сериализация объекта AuditResult в файл.
"""
import json
from pathlib import Path

from seo_scout.aggregator import AuditResult


def render_json(result: AuditResult, output_path: Path | str) -> Path:
    """
    Сохраняет результат аудита в формате JSON по указанному пути.

    :param result: объект AuditResult
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла

    Пример:
    ```python
    from seo_scout.report.json_report import render_json
    report_path = render_json(result, 'reports/audit.json')
    print(f"JSON report saved to: {report_path}")
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    # pydantic -> dict с JSON-совместимыми типами (datetime, enum)
    data = result.model_dump(mode="json")

    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return output


def summarize(result: AuditResult, top: int = 5) -> dict:
    """Короткая сводка для вывода в консоль."""
    return {
        'url': result.url,
        'score': result.site_score.score,
        'category': result.site_score.category,
        'pages': len(result.pages),
        'platform': result.platform.name if result.platform else None,
        'incomplete': result.incomplete,
        'top_issues': [
            {'code': g.code, 'severity': g.severity.value, 'pages': g.affected_pages, 'priority': g.priority}
            for g in result.top_issues(top)
        ],
    }
