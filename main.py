import logging

from lambdas.api_handler import lambda_handler as api_lambda_handler

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def lambda_handler(event, context):
    logger.info(f"Raw API Gateway event received: {event}")
    return api_lambda_handler(event, context)
