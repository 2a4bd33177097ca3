import contextlib
import io
import os.path
import posixpath
import urllib.parse

import requests


MAX_LENGTH = 10 * 1024 * 1024
CHUNK_READ_SIZE = 8192
TIMEOUT = 30


class TooBig(ValueError):
    ...


def is_url(location):
    return urllib.parse.urlsplit(location).scheme in ('http', 'https')


def stream_image(response, max_length=MAX_LENGTH):
    """
    Buffer a streaming `requests` response, refusing anything larger than
    `max_length` bytes.
    """
    declared = response.headers.get('Content-Length')
    if declared and int(declared) > max_length:
        raise TooBig(f'{declared} bytes declared, limit is {max_length}')

    data = io.BytesIO()
    for chunk in response.iter_content(CHUNK_READ_SIZE):
        if data.tell() + len(chunk) > max_length:
            raise TooBig(f'more than {max_length} bytes')
        data.write(chunk)
    data.seek(0)
    return data


def fetch(url, max_length=MAX_LENGTH):
    with contextlib.closing(requests.get(url, stream=True, timeout=TIMEOUT)) as img_response:
        img_response.raise_for_status()
        return stream_image(img_response, max_length)


def read_source(location):
    """
    Load a GIF from a local path or an http(s) URL into memory.
    """
    if is_url(location):
        return fetch(location)
    with open(location, 'rb') as file:
        return io.BytesIO(file.read())


def base_name(location):
    """
    File name of `location` without its extension.
    """
    if is_url(location):
        name = posixpath.basename(urllib.parse.urlsplit(location).path)
    else:
        name = os.path.basename(location)
    return os.path.splitext(name)[0]
