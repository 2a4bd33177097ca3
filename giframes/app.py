import io

import flask
import requests

from . import decoder, export, sources
from .compositor import CanvasBounds


app = flask.Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = sources.MAX_LENGTH

INDEX_PAGE = '''
<html>
  <body>
    <form action='result' method='post' enctype='multipart/form-data'>
      <h3>GIF frame extractor</h3>
      <input name='upload' type='file' accept='image/gif'><br>
      or URL: <input name='url' style='width: 500px' type='text'><br>
      <label>Format
        <select name='format'>
          <option value='png' selected>PNG</option>
          <option value='jpg'>JPEG</option>
        </select>
      </label><br>
      <label>JPEG quality <input name='quality' type='number' min='1' max='100' value='{quality}'></label><br>
      <label><input name='canvas' type='checkbox' value='screen'> Use full logical screen</label><br>
      <input type='submit'>
    </form>
  </body>
</html>
'''


@app.route('/', methods=['GET'])
def hello():
    return INDEX_PAGE.format(quality=export.DEFAULT_QUALITY)


@app.route('/result', methods=['POST'])
def result():
    form = flask.request.form
    try:
        fmt = export.parse_format(form.get('format', 'png'))
        quality = int(form.get('quality', export.DEFAULT_QUALITY))
        export.check_quality(fmt, quality)
        bounds = CanvasBounds(form.get('canvas', CanvasBounds.FRAME.value))
    except ValueError as e:
        return str(e), 400

    file = flask.request.files.get('upload')
    if file and file.filename != '':
        data = file.stream
        name = file.filename
    else:
        name = form.get('url', '')
        try:
            data = sources.fetch(name)
        except sources.TooBig:
            return "Too big", 413
        except requests.exceptions.RequestException:
            return "Bad url", 400

    try:
        animation = decoder.decode(data)
    except decoder.DecodeError:
        return "Not a GIF", 400

    base = sources.base_name(name) or 'animation'
    archive = io.BytesIO()
    export.extract_to_zip(animation, archive, base, fmt=fmt, quality=quality, bounds=bounds)
    archive.seek(0)
    return flask.send_file(
        archive,
        mimetype='application/zip',
        as_attachment=True,
        download_name=f'{base}_frames.zip',
    )
