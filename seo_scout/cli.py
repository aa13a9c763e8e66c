# === FILE: seo_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска SEO-аудита SEOScout через командную строку.

Команды:
  audit URL  Обойти сайт, проанализировать страницы и вывести/сохранить отчёт
  config     Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования (e.g. "%(asctime)s %(levelname)s %(message)s")

Команда audit опции:
  --max-pages INT     Жёсткий лимит страниц
  --max-depth INT     Максимальная глубина ссылок
  --js / --no-js      Рендерить каждую страницу в headless-браузере
  --sitemaps / --no-sitemaps  Засевать очередь из sitemap.xml
  --time-budget SEC   Бюджет времени на обход (секунд)
  --json PATH         Сохранить JSON-отчёт в файл
  --pretty            Преформатировать JSON-вывод (отступ 2)

Дополнительно:
  --version, -v       Показать версию SEOScout

Пример:
  seo-scout audit https://example.com --max-pages 30 --json audit.json
"""
import sys
from pathlib import Path

import click

from seo_scout import __version__
from seo_scout.config import AuditConfig, CrawlOptions, load_config
from seo_scout.engine import Engine
from seo_scout.errors import JobFatalError
from seo_scout.logger import init_logging
from seo_scout.report.json_report import render_json, summarize

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def print_summary(result):
    """Краткая сводка в stderr: оценка и главные проблемы."""
    summary = summarize(result)
    click.echo(f"Score {summary['score']} ({summary['category']}), pages: {summary['pages']}", err=True)
    for item in summary['top_issues']:
        click.echo(f"  [{item['severity']}] {item['code']}: {item['pages']} pages", err=True)


def run_audit(cfg: AuditConfig, url: str, options: CrawlOptions):
    """Запускает аудит; вынесено на уровень модуля для подмены в тестах."""
    return Engine(cfg).audit(url, options)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SEOScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML или JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='WARNING', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SEOScout CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('audit', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--max-pages', 'max_pages', type=click.IntRange(min=1), default=50, show_default=True,
              help='Жёсткий лимит страниц')
@click.option('--max-depth', 'max_depth', type=click.IntRange(min=0), default=3, show_default=True,
              help='Максимальная глубина обхода ссылок')
@click.option('--js/--no-js', 'use_javascript', default=False, show_default=True,
              help='Рендерить каждую страницу в headless-браузере')
@click.option('--sitemaps/--no-sitemaps', 'follow_sitemaps', default=True, show_default=True,
              help='Засевать очередь из sitemap.xml')
@click.option('--time-budget', 'time_budget', type=float, default=None,
              help='Бюджет времени на обход (секунд)')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
@click.pass_context
def audit(ctx, url, max_pages, max_depth, use_javascript, follow_sitemaps, time_budget, json_output, pretty):
    """Провести аудит сайта и сгенерировать отчёт."""
    cfg: AuditConfig = ctx.obj['config']
    if time_budget is not None:
        if time_budget <= 0:
            print_error('--time-budget должен быть больше нуля')
        cfg = cfg.model_copy(update={'crawl': cfg.crawl.model_copy(update={'time_budget': time_budget})})
    options = CrawlOptions(
        max_pages=max_pages,
        max_depth=max_depth,
        use_javascript=use_javascript,
        follow_sitemaps=follow_sitemaps,
    )
    click.echo(f'Starting audit of {url}', err=True)
    try:
        result = run_audit(cfg, url, options)
    except JobFatalError as e:
        print_error(f'Аудит невозможен: {e}')
    except ValueError as e:
        print_error(f'Некорректный URL: {e}')
    except Exception as e:
        print_error(f'Ошибка при аудите: {e}')

    print_summary(result)
    if result.incomplete:
        click.secho('Audit is incomplete: ' + '; '.join(result.incomplete_reasons), fg='yellow', err=True)

    # Если не сохраняем в файл, печатаем в stdout
    if not json_output:
        click.echo(result.to_json(pretty=pretty))
        return

    try:
        saved_json = render_json(result, json_output)
        click.echo(f'JSON report: {saved_json}')
    except Exception as e:
        print_error(f'Ошибка при сохранении JSON: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
