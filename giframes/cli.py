import argparse
import logging
import os
import sys

import requests

from . import decoder, export, sources
from .compositor import CanvasBounds


logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='giframes',
        description='Extract fully composited still frames from an animated GIF',
    )
    parser.add_argument('-input', '--input', required=True, help='Input GIF file path or http(s) URL')
    parser.add_argument('-output', '--output', required=True, help='Output directory for image files')
    parser.add_argument('-format', '--format', default='png', help='Output format: png or jpg')
    parser.add_argument(
        '-quality', '--quality', type=int, default=export.DEFAULT_QUALITY, help='JPEG quality (1-100)'
    )
    parser.add_argument(
        '-canvas',
        '--canvas',
        choices=[bounds.value for bounds in CanvasBounds],
        default=CanvasBounds.FRAME.value,
        help='Canvas rectangle: the target frame\'s own bounds, or the logical screen',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug output')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        fmt = export.parse_format(args.format)
        export.check_quality(fmt, args.quality)
    except ValueError as e:
        logger.error('%s', e)
        return 1

    try:
        data = sources.read_source(args.input)
    except (OSError, requests.exceptions.RequestException, sources.TooBig) as e:
        logger.error('Error opening GIF file: %s', e)
        return 1

    try:
        animation = decoder.decode(data)
    except decoder.DecodeError as e:
        logger.error('Error decoding GIF: %s', e)
        return 1

    try:
        os.makedirs(args.output, exist_ok=True)
    except OSError as e:
        logger.error('Error creating output directory: %s', e)
        return 1

    export.extract_frames(
        animation,
        args.output,
        sources.base_name(args.input),
        fmt=fmt,
        quality=args.quality,
        bounds=CanvasBounds(args.canvas),
    )
    logger.info('Successfully converted GIF to %d image files', len(animation.frames))
    return 0


if __name__ == '__main__':
    sys.exit(main())
