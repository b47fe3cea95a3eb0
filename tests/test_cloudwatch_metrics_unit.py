"""Unit tests for CloudWatch metrics functionality."""

from unittest.mock import Mock, patch

from botocore.exceptions import ClientError

from music_news.lambda_handler import send_cloudwatch_metrics

METRICS = {
    "feeds_configured": 8,
    "feeds_failed": 1,
    "items_returned": 42,
    "translation_candidates": 30,
    "translation_cache_hits": 12,
    "items_translated": 18,
    "translation_failed": False,
    "errors": ["Feed Mixmag (https://mixmag.net/rss.xml) unavailable: timeout"],
}


class TestCloudWatchMetricsUnit:
    """Unit tests for CloudWatch metrics functionality."""

    def test_send_cloudwatch_metrics_success(self):
        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(METRICS, "us-east-1", "test-exec-123", "Music-News")

            mock_boto_client.assert_called_with("cloudwatch", region_name="us-east-1")
            all_metrics = []
            for call in mock_cloudwatch.put_metric_data.call_args_list:
                _, kwargs = call
                assert kwargs["Namespace"] == "Music-News"
                all_metrics.extend(kwargs["MetricData"])

        values = {metric["MetricName"]: metric["Value"] for metric in all_metrics}
        assert values == {
            "FeedsConfigured": 8,
            "FeedsFailed": 1,
            "ItemsReturned": 42,
            "TranslationCandidates": 30,
            "TranslationCacheHits": 12,
            "ItemsTranslated": 18,
            "TranslationFailures": 0,
        }
        assert all(metric["Unit"] == "Count" for metric in all_metrics)

    def test_send_cloudwatch_metrics_client_error(self):
        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch
            mock_cloudwatch.put_metric_data.side_effect = ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "Access denied"}},
                "PutMetricData",
            )

            # Should not raise
            send_cloudwatch_metrics(METRICS, "us-east-1", "test-exec-123")

    def test_translation_failure_is_counted(self):
        with patch("boto3.client") as mock_boto_client:
            send_cloudwatch_metrics(
                {**METRICS, "translation_failed": True}, "eu-west-1", "exec"
            )
            _, kwargs = mock_boto_client.return_value.put_metric_data.call_args

        failures = next(
            m for m in kwargs["MetricData"] if m["MetricName"] == "TranslationFailures"
        )
        assert failures["Value"] == 1
