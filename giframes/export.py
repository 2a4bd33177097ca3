import enum
import io
import logging
import pathlib
import zipfile

import PIL.Image

from . import compositor
from .compositor import CanvasBounds


logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 90


class Format(enum.Enum):
    PNG = '.png'
    JPEG = '.jpg'

    @property
    def extension(self):
        return self.value


class EncodeError(Exception):
    ...


def parse_format(name):
    name = name.lower()
    if name == 'png':
        return Format.PNG
    if name in ('jpg', 'jpeg'):
        return Format.JPEG
    raise ValueError(f'Unsupported format: {name}')


def check_quality(fmt, quality):
    if fmt is Format.JPEG and not 1 <= quality <= 100:
        raise ValueError('Quality must be between 1 and 100')


def frame_filename(base_name, index, fmt):
    return f'{base_name}_frame_{index:03d}{fmt.extension}'


def flatten(image):
    # JPEG has no alpha; transparent areas come out black.
    background = PIL.Image.new('RGBA', image.size, (0, 0, 0, 255))
    return PIL.Image.alpha_composite(background, image).convert('RGB')


def encode_frame(image, stream, fmt=Format.PNG, quality=DEFAULT_QUALITY):
    try:
        if fmt is Format.JPEG:
            flatten(image).save(stream, format='JPEG', quality=quality)
        else:
            image.save(stream, format='PNG')
    except (OSError, ValueError) as e:
        raise EncodeError(str(e)) from e


def iter_frames(animation, bounds=CanvasBounds.FRAME):
    for index in range(len(animation.frames)):
        yield index, compositor.composite(animation, index, bounds)


def extract_frames(
    animation,
    output_dir,
    base_name,
    fmt=Format.PNG,
    quality=DEFAULT_QUALITY,
    bounds=CanvasBounds.FRAME,
):
    """
    Write every composited frame of `animation` into `output_dir`.

    A frame that cannot be written is logged and skipped. Returns the paths
    that were written.
    """
    output_dir = pathlib.Path(output_dir)
    written = []
    for index, image in iter_frames(animation, bounds):
        filename = frame_filename(base_name, index, fmt)
        path = output_dir / filename
        try:
            file = open(path, 'wb')
        except OSError as e:
            logger.error('Error creating output file %s: %s', filename, e)
            continue
        with file:
            try:
                encode_frame(image, file, fmt, quality)
            except EncodeError as e:
                logger.error('Error encoding frame %d: %s', index, e)
                continue
        logger.info('Saved frame %d as %s', index, filename)
        written.append(path)
    return written


def extract_to_zip(
    animation,
    stream,
    base_name,
    fmt=Format.PNG,
    quality=DEFAULT_QUALITY,
    bounds=CanvasBounds.FRAME,
):
    """
    Like `extract_frames`, but into a zip archive written to `stream`.
    """
    names = []
    with zipfile.ZipFile(stream, 'w') as archive:
        for index, image in iter_frames(animation, bounds):
            data = io.BytesIO()
            try:
                encode_frame(image, data, fmt, quality)
            except EncodeError as e:
                logger.error('Error encoding frame %d: %s', index, e)
                continue
            filename = frame_filename(base_name, index, fmt)
            archive.writestr(filename, data.getvalue())
            names.append(filename)
    return names
