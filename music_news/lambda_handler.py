"""Lambda handler serving ``GET /api/news`` for the music news aggregator."""

import json
import math
import os
from datetime import UTC, datetime, timedelta
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .aggregator import FeedAggregator
from .cache import TTLCache
from .config import Config, TranslationConfig
from .errors import InternalFailure, InvalidRequest
from .feed_sources import FeedSourceProvider
from .logging_config import create_execution_logger, setup_structured_logging
from .models import ResponseDocument
from .response import assemble_response
from .rss import FeedProcessor
from .translate import DeepLClient, TranslationStage

# Setup structured logging
setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))

MIN_HOURS = 1
MAX_HOURS = 72
DEFAULT_HOURS = 24
CACHE_CONTROL = "s-maxage=300, stale-while-revalidate=600"

# Process-wide state, reused by warm invocations
_translation_cache = TTLCache(TranslationConfig().cache_ttl)
_secret_cache = TTLCache(timedelta(minutes=10))
_feed_source_providers: dict[str, FeedSourceProvider] = {}


def parse_hours_strict(raw: Any) -> int:
    """Parse the ``hours`` query parameter.

    Raises:
        InvalidRequest: If the value is missing, not numeric or outside [1, 72]
    """
    if raw is None or not str(raw).strip():
        raise InvalidRequest("hours is missing")
    try:
        number = float(str(raw).strip())
    except ValueError as e:
        raise InvalidRequest(f"hours is not numeric: {raw!r}") from e
    if not math.isfinite(number):
        raise InvalidRequest(f"hours is not finite: {raw!r}")
    hours = int(number)
    if not MIN_HOURS <= hours <= MAX_HOURS:
        raise InvalidRequest(f"hours out of range: {hours}")
    return hours


def parse_hours(raw: Any) -> int:
    """Parse ``hours`` leniently: clamp out-of-range values, default the rest."""
    try:
        return parse_hours_strict(raw)
    except InvalidRequest:
        pass
    try:
        number = float(str(raw).strip())
    except ValueError:
        return DEFAULT_HOURS
    if math.isnan(number):
        return DEFAULT_HOURS
    if math.isinf(number):
        return MAX_HOURS if number > 0 else MIN_HOURS
    return min(MAX_HOURS, max(MIN_HOURS, int(number)))


def get_feed_source_provider(config: Config) -> FeedSourceProvider:
    """Return the long-lived provider for the configured feed list."""
    source_config = config.get_feed_source_config()
    provider = _feed_source_providers.get(source_config.csv_url)
    if provider is None:
        provider = FeedSourceProvider(source_config, timeout=config.feed_timeout)
        _feed_source_providers[source_config.csv_url] = provider
    return provider


def collect_news(
    hours: int,
    now: datetime,
    feed_sources: FeedSourceProvider,
    aggregator: FeedAggregator,
    translator: TranslationStage,
) -> tuple[ResponseDocument, dict[str, Any]]:
    """Run the pipeline for one request.

    Returns:
        The response document and the execution metrics

    Raises:
        InternalFailure: If the orchestration itself fails
    """
    try:
        since = now - timedelta(hours=hours)
        descriptors = feed_sources.load(now)
        outcomes = aggregator.fetch_all(descriptors, since)
        items = aggregator.merge_items(outcomes)
        stats = translator.apply(items, now)
        document = assemble_response(items, hours, now, feed_count=len(descriptors))
    except Exception as e:
        raise InternalFailure(str(e) or type(e).__name__) from e

    metrics = {
        "feeds_configured": len(descriptors),
        "feeds_failed": sum(1 for outcome in outcomes if not outcome.ok),
        "items_returned": len(items),
        "translation_candidates": stats.candidates,
        "translation_cache_hits": stats.cache_hits,
        "items_translated": stats.translated,
        "translation_failed": stats.failed,
        "errors": [str(outcome.error) for outcome in outcomes if not outcome.ok],
    }
    return document, metrics


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Main Lambda handler for ``GET /api/news?hours=<int>``.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response with the JSON news document
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)

    main_logger.log_execution_start(
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
        lambda_function_name=getattr(context, "function_name", "unknown"),
    )

    try:
        params = (event or {}).get("queryStringParameters") or {}
        hours = parse_hours(params.get("hours"))
        now = datetime.now(UTC)

        config = Config()
        main_logger.info("Configuration initialized", hours=hours)

        feed_sources = get_feed_source_provider(config)
        processor = FeedProcessor(config.get_fetch_config(), execution_id=execution_id)
        aggregator = FeedAggregator(
            processor,
            max_workers=config.feed_max_workers,
            execution_id=execution_id,
        )

        translation_config = config.get_translation_config(
            get_deepl_auth_key(config, execution_id, now)
        )
        client = DeepLClient(translation_config) if translation_config.auth_key else None
        if client is None:
            main_logger.info("No DeepL auth key configured, translation disabled")
        translator = TranslationStage(
            translation_config, _translation_cache, client, execution_id=execution_id
        )

        document, metrics = collect_news(hours, now, feed_sources, aggregator, translator)
    except Exception as e:
        error_msg = f"Critical error in Lambda handler: {e}"
        main_logger.error(error_msg, error=str(e))
        main_logger.log_execution_end(success=False, error=error_msg)
        return _json_response(
            500, {"error": "Internal Server Error", "message": str(e) or type(e).__name__}
        )

    main_logger.log_metrics(metrics)
    if config.metrics_enabled:
        send_cloudwatch_metrics(
            metrics, config.aws_region, execution_id, config.metrics_namespace
        )
    main_logger.log_execution_end(success=True, metrics=metrics)

    return _json_response(
        200, document.to_dict(), {"Cache-Control": CACHE_CONTROL}
    )


def _json_response(
    status_code: int, body: dict[str, Any], headers: dict[str, str] | None = None
) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json; charset=utf-8", **(headers or {})},
        "body": json.dumps(body, ensure_ascii=False),
    }


def get_deepl_auth_key(config: Config, execution_id: str, now: datetime) -> str:
    """
    Resolve the DeepL auth key.

    DEEPL_AUTH_KEY wins when set. Otherwise the key is read from the AWS
    Secrets Manager secret named by DEEPL_SECRET_NAME, stored either as a
    plain string or as a JSON object. Lookups are cached for ten minutes.
    Any failure yields an empty key, which disables translation.

    Args:
        config: Runtime configuration
        execution_id: Execution ID for logging context
        now: Current time, used for the cache

    Returns:
        The auth key, or an empty string
    """
    if config.deepl_auth_key:
        return config.deepl_auth_key

    secret_name = config.deepl_secret_name.strip()
    if not secret_name:
        return ""

    cached = _secret_cache.get(secret_name, now)
    if cached is not None:
        return cached

    secrets_logger = create_execution_logger("secrets_manager", execution_id)
    try:
        secrets_logger.info(f"Retrieving DeepL auth key from Secrets Manager: {secret_name}")
        secrets_client = boto3.client("secretsmanager", region_name=config.aws_region)
        response = secrets_client.get_secret_value(SecretId=secret_name)
        auth_key = _extract_secret_value(response.get("SecretString") or "")
    except (ClientError, BotoCoreError) as e:
        secrets_logger.error(
            f"AWS Secrets Manager error retrieving {secret_name}: {type(e).__name__}"
        )
        return ""
    except ValueError as e:
        secrets_logger.error(f"Invalid secret format for {secret_name}: {e}")
        return ""

    _secret_cache.put(secret_name, auth_key, now)
    return auth_key


def _extract_secret_value(secret_value: str) -> str:
    """Return the key from a plain-text or JSON secret.

    Raises:
        ValueError: If the secret holds no usable value
    """
    if not secret_value.strip():
        raise ValueError("secret is empty")

    try:
        secret_data = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value.strip()

    if not isinstance(secret_data, dict):
        raise ValueError("JSON secret must be an object")

    for key in ["auth_key", "deepl_auth_key", "api_key"]:
        value = secret_data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    # If no expected key found, use the first non-empty value
    for value in secret_data.values():
        if isinstance(value, str) and value.strip():
            return value.strip()

    raise ValueError("no usable value in JSON secret")


def send_cloudwatch_metrics(
    metrics: dict[str, Any],
    aws_region: str,
    execution_id: str,
    namespace: str = "Music-News",
) -> None:
    """
    Send custom metrics to CloudWatch.

    Args:
        metrics: Dictionary containing execution metrics
        aws_region: AWS region for CloudWatch client
        execution_id: Execution ID for logging context
        namespace: CloudWatch namespace
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)

    try:
        metrics_logger.info("Sending metrics to CloudWatch", metrics=metrics)
        cloudwatch = boto3.client("cloudwatch", region_name=aws_region)

        values = [
            ("FeedsConfigured", metrics["feeds_configured"]),
            ("FeedsFailed", metrics["feeds_failed"]),
            ("ItemsReturned", metrics["items_returned"]),
            ("TranslationCandidates", metrics["translation_candidates"]),
            ("TranslationCacheHits", metrics["translation_cache_hits"]),
            ("ItemsTranslated", metrics["items_translated"]),
            ("TranslationFailures", 1 if metrics["translation_failed"] else 0),
        ]
        metric_data = [
            {"MetricName": name, "Value": value, "Unit": "Count"}
            for name, value in values
        ]

        # CloudWatch accepts at most 20 metrics per call
        batch_size = 20
        for i in range(0, len(metric_data), batch_size):
            batch = metric_data[i : i + batch_size]
            cloudwatch.put_metric_data(Namespace=namespace, MetricData=batch)

        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=namespace,
        )

    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
        # Don't raise - metrics failure shouldn't break the main flow
