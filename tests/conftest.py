"""
Helpers for building small GIFs byte by byte.

The image data is LZW "encoded" by emitting a clear code before every pixel,
which keeps the code width fixed and needs no dictionary on our side.
"""
import struct

import pytest

from giframes import Animation, Frame


RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)


def _table_bits(palette):
    bits = 1
    while (1 << bits) < len(palette):
        bits += 1
    return bits


def _color_table(palette):
    bits = _table_bits(palette)
    table = bytearray(b''.join(bytes(color) for color in palette))
    table.extend(bytes(3 * (1 << bits) - len(table)))
    return bits, bytes(table)


def _subblocks(data):
    out = bytearray()
    for i in range(0, len(data), 255):
        chunk = data[i:i + 255]
        out.append(len(chunk))
        out += chunk
    out.append(0)
    return bytes(out)


def lzw_uncompressed(pixels, min_code_size):
    clear = 1 << min_code_size
    code_len = min_code_size + 1
    codes = []
    for pixel in pixels:
        codes += [clear, pixel]
    codes.append(clear + 1)

    out = bytearray()
    bits = bit_count = 0
    for code in codes:
        bits |= code << bit_count
        bit_count += code_len
        while bit_count >= 8:
            out.append(bits & 0xFF)
            bits >>= 8
            bit_count -= 8
    if bit_count:
        out.append(bits & 0xFF)
    return bytes(out)


def interlace(pixels, width, height):
    rows = [pixels[y * width:(y + 1) * width] for y in range(height)]
    order = [y for start, step in ((0, 8), (4, 8), (2, 4), (1, 2)) for y in range(start, height, step)]
    return [pixel for y in order for pixel in rows[y]]


def build_gif(size, palette, frames, loop=None, trailer=True, background=0):
    """
    `frames` is a list of dicts with keys `pixels` (row-major indices) and
    optionally `box` (left, top, width, height), `disposal`, `transparency`,
    `delay`, `palette` (local color table) and `interlace`.
    """
    out = bytearray(b'GIF89a')
    flags = 0
    table = b''
    if palette:
        bits, table = _color_table(palette)
        flags = 0x80 | (bits - 1)
    out += struct.pack('<2HBBB', size[0], size[1], flags, background, 0)
    out += table

    if loop is not None:
        out += b'\x21\xff' + _subblocks(b'NETSCAPE2.0')[:-1] + _subblocks(struct.pack('<BH', 1, loop))

    for frame in frames:
        box = frame.get('box', (0, 0) + tuple(size))
        transparency = frame.get('transparency')
        packed = (frame.get('disposal', 0) << 2) | (1 if transparency is not None else 0)
        out += b'\x21\xf9\x04' + struct.pack('<BHB', packed, frame.get('delay', 0), transparency or 0) + b'\x00'

        local = frame.get('palette')
        image_flags = 0
        local_table = b''
        if local:
            bits, local_table = _color_table(local)
            image_flags = 0x80 | (bits - 1)
        pixels = frame['pixels']
        if frame.get('interlace'):
            image_flags |= 0x40
            pixels = interlace(pixels, box[2], box[3])
        out += b'\x2c' + struct.pack('<4HB', *box, image_flags) + local_table

        min_code_size = max(2, _table_bits(local or palette or ()))
        out.append(min_code_size)
        out += _subblocks(lzw_uncompressed(pixels, min_code_size))

    if trailer:
        out += b'\x3b'
    return bytes(out)


def solid_frame(color_index, palette, size=(1, 1), position=(0, 0), transparency=None):
    return Frame.from_indices(
        [color_index] * (size[0] * size[1]),
        size,
        palette,
        position=position,
        transparency=transparency,
    )


@pytest.fixture
def make_gif():
    return build_gif


@pytest.fixture
def red_blue_animation():
    palette = [RED, BLUE]
    frames = [solid_frame(i, palette) for i in (0, 1, 0)]
    return Animation(frames, [1, 2, 1], size=(1, 1))
