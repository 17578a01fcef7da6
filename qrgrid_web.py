import logging

from flask import Flask, Response, request

import qrgrid

logger = logging.getLogger('qrgrid.web')


def text(body, status=200):
    return Response(body, status=status, mimetype='text/plain')


def create_app():
    app = Flask(__name__)

    @app.route('/ws', methods=['POST'])
    def send_qr():
        args = request.get_json(force=True, silent=True)
        if not isinstance(args, dict) or not isinstance(args.get('content'), str):
            return text('Invalid request', 400)
        border = args.get('border', False)
        if not isinstance(border, bool):
            return text('Invalid border', 400)
        try:
            symbol = qrgrid.build(args.get('version', 1), args['content'],
                                  args.get('mode', qrgrid.Mode.ALPHANUMERIC))
        except qrgrid.InvalidVersion as e:
            logger.info('rejected request: %s', e)
            return text('Invalid version', 400)
        except qrgrid.InvalidMode as e:
            logger.info('rejected request: %s', e)
            return text('Invalid mode', 400)
        logger.debug('built version %d symbol', symbol.version)
        return text('\n'.join(qrgrid.render(symbol, border=border)))

    @app.route('/health')
    def health():
        return text('ok')

    return app


if __name__ == '__main__':
    from qrgrid_logging import setup_logging

    setup_logging(logging.DEBUG)
    create_app().run(port=3001)
