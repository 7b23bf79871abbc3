#!/usr/bin/env python
"""
Start the content generation FastAPI service.
"""

import os
import sys
import argparse
import logging
import uvicorn

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from agrigen.infra.config import get_settings
from agrigen.observability.logging_utils import init_logging

logger = logging.getLogger(__name__)


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Start the farm content generation API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python run_web.py                          # default host and port
    python run_web.py --port 8080              # listen on 8080
    python run_web.py --providers gemini,openai
    python run_web.py --reload                 # auto reload while developing
        """
    )

    parser.add_argument(
        '--host',
        type=str,
        default='0.0.0.0',
        help='Bind address (default: 0.0.0.0)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=settings.fastapi_port,
        help=f'Port (default: {settings.fastapi_port})'
    )

    parser.add_argument(
        '--reload',
        action='store_true',
        help='Enable auto reload (development only)'
    )

    parser.add_argument(
        '--providers',
        type=str,
        default=None,
        help='Comma separated generation providers in fallback order, e.g. gemini,openai'
    )

    parser.add_argument(
        '--workers',
        type=int,
        default=1,
        help='Worker processes (default: 1)'
    )

    args = parser.parse_args()

    if args.providers:
        os.environ['GENERATION_PROVIDERS'] = args.providers
        get_settings.cache_clear()
        settings = get_settings()

    init_logging(log_path=settings.log_path)

    display_host = args.host if args.host != '0.0.0.0' else 'localhost'
    logger.info(f"Starting API server: http://{display_host}:{args.port}")
    logger.info(f"Generation providers: {','.join(settings.generation_providers)}")
    logger.info(f"Auto reload: {args.reload}")
    logger.info(f"Workers: {args.workers}")
    logger.info(f"API docs: http://{display_host}:{args.port}/docs")

    uvicorn.run(
        "agrigen.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers if not args.reload else 1,
        log_level="info"
    )


if __name__ == '__main__':
    main()
