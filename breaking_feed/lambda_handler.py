"""Entry points for Breaking Feed: Lambda handler and run-once CLI."""

import json
import os
import sys
from datetime import UTC, datetime
from typing import Any

import boto3
import firebase_admin
from botocore.exceptions import ClientError
from firebase_admin import credentials

from .config import Config
from .logging_config import create_execution_logger, setup_structured_logging
from .pipeline import BreakingFeedPipeline, CycleReport

setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Run one breaking-feed update cycle.

    Args:
        event: Lambda event data
        context: Lambda context object

    Returns:
        Response dictionary with status and metrics
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)

    main_logger.log_execution_start(
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
        lambda_function_name=getattr(context, "function_name", "unknown"),
    )

    report = CycleReport()
    aws_region = "us-east-1"

    try:
        config = Config()
        aws_region = config.aws_region
        main_logger.info("Configuration initialized")

        youtube_api_key = config.youtube_api_key
        if config.youtube_secret_name:
            youtube_api_key = get_secret_value(
                config.youtube_secret_name, aws_region, execution_id
            )

        pipeline_config = config.get_pipeline_config(youtube_api_key)
        if pipeline_config.channel_ids and not pipeline_config.youtube_api_key:
            raise ValueError("YouTube API key is required when CHANNEL_IDS is set")

        firebase_app = init_firebase_app(config, execution_id)

        pipeline = BreakingFeedPipeline(
            pipeline_config, firebase_app=firebase_app, execution_id=execution_id
        )
        try:
            pipeline.run()
        finally:
            report = pipeline.report

        send_cloudwatch_metrics(report, aws_region, execution_id)
        main_logger.log_execution_end(success=True, metrics=report.as_dict())

        return {
            "statusCode": 200,
            "body": json.dumps(
                {
                    "message": "Breaking feed update completed",
                    "execution_id": execution_id,
                    "metrics": report.as_dict(),
                }
            ),
        }

    except Exception as e:
        error_msg = f"Breaking feed update failed: {e}"
        main_logger.error(error_msg, error=str(e))
        report.errors.append(error_msg)

        send_cloudwatch_metrics(report, aws_region, execution_id)
        main_logger.log_execution_end(
            success=False, metrics=report.as_dict(), error=error_msg
        )

        return {
            "statusCode": 500,
            "body": json.dumps(
                {
                    "message": "Breaking feed update failed",
                    "execution_id": execution_id,
                    "error": error_msg,
                    "metrics": report.as_dict(),
                }
            ),
        }


def init_firebase_app(config: Config, execution_id: str) -> firebase_admin.App:
    """
    Initialize (or reuse) the default Firebase app.

    The service account JSON comes from FIREBASE_SERVICE_ACCOUNT, or from
    Secrets Manager when FIREBASE_SECRET_NAME is set.

    Raises:
        ValueError: If no service account is configured or it is not JSON
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    raw = config.firebase_service_account
    if config.firebase_secret_name:
        raw = get_secret_value(
            config.firebase_secret_name, config.aws_region, execution_id, raw_json=True
        )
    if not raw or not raw.strip():
        raise ValueError("Firebase service account configuration cannot be empty")

    try:
        service_account = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Firebase service account is not valid JSON: {e}") from e

    create_execution_logger("firebase", execution_id).info("Initializing Firebase app")
    return firebase_admin.initialize_app(credentials.Certificate(service_account))


def get_secret_value(
    secret_name: str, aws_region: str, execution_id: str, raw_json: bool = False
) -> str:
    """
    Retrieve a secret string from AWS Secrets Manager.

    Plain string secrets are returned as-is. JSON object secrets are
    searched for a `value`, `key` or `api_key` field, unless raw_json is
    set, in which case the JSON document itself is returned. Secret values
    are never logged.

    Args:
        secret_name: Name of the secret in Secrets Manager
        aws_region: AWS region for Secrets Manager client
        execution_id: Execution ID for logging context
        raw_json: Return the whole secret string without unwrapping

    Returns:
        Secret value

    Raises:
        RuntimeError: If the secret cannot be retrieved or is malformed
    """
    secrets_logger = create_execution_logger("secrets_manager", execution_id)

    if not secret_name or not secret_name.strip():
        raise ValueError("Secret name cannot be empty")

    try:
        secrets_logger.info(f"Retrieving secret from Secrets Manager: {secret_name}")
        secrets_client = boto3.client("secretsmanager", region_name=aws_region)
        response = secrets_client.get_secret_value(SecretId=secret_name)

        secret_value = (response.get("SecretString") or "").strip()
        if not secret_value:
            raise ValueError(f"Secret {secret_name} contains empty value")

        if raw_json:
            return secret_value

        try:
            secret_data = json.loads(secret_value)
        except json.JSONDecodeError:
            return secret_value

        if not isinstance(secret_data, dict):
            raise ValueError(f"JSON secret {secret_name} must be an object")

        for key in ("value", "key", "api_key"):
            value = secret_data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()

        raise ValueError(f"No usable value found in JSON secret {secret_name}")

    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        secrets_logger.error(
            f"AWS Secrets Manager error retrieving {secret_name}: {error_code}"
        )
        raise RuntimeError(f"Failed to retrieve secret {secret_name}") from e
    except ValueError as e:
        secrets_logger.error(f"Invalid secret format for {secret_name}: {e}")
        raise RuntimeError(f"Invalid secret format for {secret_name}") from e


def send_cloudwatch_metrics(
    report: CycleReport, aws_region: str, execution_id: str
) -> None:
    """
    Send cycle metrics to CloudWatch.

    Failures are logged and never propagate.

    Args:
        report: Cycle report with counters and errors
        aws_region: AWS region for CloudWatch client
        execution_id: Execution ID for logging context
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)

    execution_success = not report.errors
    counters = {
        "ArticlesFetched": report.articles_fetched,
        "VideosFetched": report.videos_fetched,
        "NewVideos": report.new_videos,
        "ArticlesPurged": report.articles_purged,
        "ItemsUpserted": report.items_upserted,
        "ItemsEvicted": report.items_evicted,
        "NotificationsSent": report.notifications_sent,
        "Errors": len(report.errors),
    }
    metric_data = [
        {
            "MetricName": name,
            "Value": value,
            "Unit": "Count",
            "Dimensions": [{"Name": "ExecutionId", "Value": execution_id}],
        }
        for name, value in counters.items()
    ]
    metric_data.append(
        {
            "MetricName": "ExecutionSuccess" if execution_success else "ExecutionFailure",
            "Value": 1,
            "Unit": "Count",
            "Dimensions": [
                {"Name": "Status", "Value": "Success" if execution_success else "Failure"}
            ],
        }
    )

    try:
        cloudwatch = boto3.client("cloudwatch", region_name=aws_region)
        cloudwatch.put_metric_data(Namespace="Breaking-Feed", MetricData=metric_data)
        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            execution_success=execution_success,
        )
    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))


def main() -> int:
    """Run one cycle from the command line; exit status 0 on success."""
    response = lambda_handler({}, None)
    return 0 if response["statusCode"] == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
