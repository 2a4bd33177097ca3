"""
Read an animated GIF into its raw, uncomposited frames.

Pillow's GIF plugin pastes every frame onto the previous ones as it seeks, so
by the time a frame is visible the disposal information has already been
applied (its own way). We want to replay disposal ourselves, which means
walking the block structure and decoding each image's LZW data here. The
decoded frames are still handed out as Pillow "P" images.
"""
import functools
import io
import itertools
import logging
import struct

import PIL.Image


logger = logging.getLogger(__name__)

IMAGE_SEPARATOR = 0x2C
EXTENSION_INTRODUCER = 0x21
TRAILER = 0x3B

GRAPHIC_CONTROL_LABEL = 0xF9
APPLICATION_LABEL = 0xFF
LOOP_APPLICATIONS = (b'NETSCAPE2.0', b'ANIMEXTS1.0')

MAX_CODE_LEN = 12
MAX_TABLE_SIZE = 1 << MAX_CODE_LEN

# (first row, step) for each interlace pass.
INTERLACE_PASSES = ((0, 8), (4, 8), (2, 4), (1, 2))


class DecodeError(ValueError):
    ...


class Frame:
    """
    One image of the animation, exactly as stored in the file.

    `box` is (left, top, right, bottom) in logical screen coordinates.
    """

    def __init__(self, image, box, delay=0):
        self.image = image
        self.box = box
        self.delay = delay

    @classmethod
    def from_indices(cls, pixels, size, palette, position=(0, 0), transparency=None, delay=0):
        """
        Build a frame from palette indices.

        `palette` is a sequence of (r, g, b) triples. Indices past its end
        render as opaque black.
        """
        width, height = size
        if width and height:
            image = PIL.Image.frombytes('P', size, bytes(pixels))
        else:
            image = PIL.Image.new('P', size)
        flat = bytearray(itertools.chain.from_iterable(palette))
        flat.extend(bytes(3 * 256 - len(flat)))
        image.putpalette(flat)
        if transparency is not None:
            image.info['transparency'] = transparency
        left, top = position
        return cls(image, (left, top, left + width, top + height), delay)

    @property
    def size(self):
        return self.image.size

    @functools.cached_property
    def rgba(self):
        return self.image.convert('RGBA')

    def __repr__(self):
        return f'<Frame box={self.box} delay={self.delay}>'


class Animation:
    """
    Decoded frames plus a parallel list of disposal codes.

    `disposal` may be shorter than `frames`; missing entries mean "none".
    """

    def __init__(self, frames, disposal=(), size=None, background=0, loop=None):
        self.frames = list(frames)
        self.disposal = list(disposal)
        if size is None:
            size = (
                max((frame.box[2] for frame in self.frames), default=0),
                max((frame.box[3] for frame in self.frames), default=0),
            )
        self.size = size
        self.background = background
        self.loop = loop

    def __len__(self):
        return len(self.frames)

    def __repr__(self):
        return f'<Animation size={self.size} frames={len(self.frames)}>'


def _read(stream, length):
    data = stream.read(length)
    if len(data) < length:
        raise DecodeError('unexpected end of file')
    return data


def _read_byte(stream):
    return _read(stream, 1)[0]


def _read_subblocks(stream):
    blocks = []
    size = _read_byte(stream)
    while size:
        blocks.append(_read(stream, size))
        size = _read_byte(stream)
    return blocks


def _read_palette(stream, flags):
    size = 1 << ((flags & 0x07) + 1)
    raw = _read(stream, 3 * size)
    return [tuple(raw[i:i + 3]) for i in range(0, len(raw), 3)]


def lzw_decode(data, min_code_size, pixel_count):
    """
    Decode GIF-flavored LZW `data` into `pixel_count` palette indices.
    """
    if not 2 <= min_code_size <= 8:
        raise DecodeError(f'invalid LZW minimum code size {min_code_size}')
    clear_code = 1 << min_code_size
    end_code = clear_code + 1
    initial_table = [bytes([i]) for i in range(clear_code)] + [b'', b'']

    table = list(initial_table)
    code_len = min_code_size + 1
    prev = None
    out = bytearray()
    bits = bit_count = pos = 0

    while len(out) < pixel_count:
        while bit_count < code_len:
            if pos >= len(data):
                raise DecodeError('not enough image data')
            bits |= data[pos] << bit_count
            bit_count += 8
            pos += 1
        code = bits & ((1 << code_len) - 1)
        bits >>= code_len
        bit_count -= code_len

        if code == clear_code:
            table = list(initial_table)
            code_len = min_code_size + 1
            prev = None
            continue
        if code == end_code:
            break
        if code < len(table):
            entry = table[code]
        elif code == len(table) and prev is not None:
            entry = prev + prev[:1]
        else:
            raise DecodeError(f'invalid LZW code {code}')

        out += entry
        if prev is not None and len(table) < MAX_TABLE_SIZE:
            table.append(prev + entry[:1])
        prev = entry
        if len(table) == 1 << code_len and code_len < MAX_CODE_LEN:
            code_len += 1

    if len(out) < pixel_count:
        raise DecodeError('not enough image data')
    return bytes(out[:pixel_count])


def deinterlace(pixels, width, height):
    if not width or not height:
        return pixels
    rows = iter(pixels[i:i + width] for i in range(0, width * height, width))
    result = [None] * height
    for start, step in INTERLACE_PASSES:
        for y in range(start, height, step):
            result[y] = next(rows)
    return b''.join(result)


class _Control:
    def __init__(self, disposal=0, transparency=None, delay=0):
        self.disposal = disposal
        self.transparency = transparency
        self.delay = delay


def _read_graphic_control(blocks):
    if not blocks or len(blocks[0]) < 4:
        logger.debug('ignoring short graphic control extension')
        return _Control()
    packed, delay, index = struct.unpack('<BHB', blocks[0][:4])
    transparency = index if packed & 0x01 else None
    return _Control((packed >> 2) & 0x07, transparency, delay)


def _read_loop(blocks):
    if len(blocks) >= 2 and blocks[0] in LOOP_APPLICATIONS:
        sub = blocks[1]
        if len(sub) >= 3 and sub[0] == 0x01:
            return struct.unpack('<H', sub[1:3])[0]
    return None


def _read_frame(stream, screen_size, global_palette, control):
    left, top, width, height, flags = struct.unpack('<4HB', _read(stream, 9))
    palette = _read_palette(stream, flags) if flags & 0x80 else global_palette
    if palette is None:
        raise DecodeError('no color table')
    if left + width > screen_size[0] or top + height > screen_size[1]:
        raise DecodeError('frame bounds larger than image bounds')

    min_code_size = _read_byte(stream)
    data = b''.join(_read_subblocks(stream))
    pixels = lzw_decode(data, min_code_size, width * height)
    if flags & 0x40:
        pixels = deinterlace(pixels, width, height)

    # The transparent index may sit past the end of the table.
    invalid = set(pixels) - set(range(len(palette)))
    invalid.discard(control.transparency)
    if invalid:
        raise DecodeError(f'invalid pixel value {min(invalid)}')

    return Frame.from_indices(
        pixels,
        (width, height),
        palette,
        position=(left, top),
        transparency=control.transparency,
        delay=control.delay,
    )


def decode(source):
    """
    Decode a GIF from bytes or a binary file object.

    Returns an `Animation`. Raises `DecodeError` for anything that is not a
    well formed GIF.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        source = io.BytesIO(source)

    signature = source.read(6)
    if signature not in (b'GIF87a', b'GIF89a'):
        raise DecodeError('not a GIF file')
    width, height, flags, background, _aspect = struct.unpack('<2HBBB', _read(source, 7))
    global_palette = _read_palette(source, flags) if flags & 0x80 else None

    frames = []
    disposal = []
    loop = None
    control = _Control()
    while True:
        introducer = source.read(1)
        if not introducer:
            if not frames:
                raise DecodeError('unexpected end of file')
            logger.warning('GIF ended without a trailer after %d frame(s)', len(frames))
            break
        block_type = introducer[0]
        if block_type == IMAGE_SEPARATOR:
            frames.append(_read_frame(source, (width, height), global_palette, control))
            disposal.append(control.disposal)
            control = _Control()
        elif block_type == EXTENSION_INTRODUCER:
            label = _read_byte(source)
            blocks = _read_subblocks(source)
            if label == GRAPHIC_CONTROL_LABEL:
                control = _read_graphic_control(blocks)
            elif label == APPLICATION_LABEL:
                loop = _read_loop(blocks) if loop is None else loop
        elif block_type == TRAILER:
            break
        else:
            raise DecodeError(f'unknown block type 0x{block_type:02x}')

    if not frames:
        raise DecodeError('no frames in file')
    logger.debug('decoded %d frame(s) on a %dx%d screen', len(frames), width, height)
    return Animation(frames, disposal, (width, height), background, loop)
