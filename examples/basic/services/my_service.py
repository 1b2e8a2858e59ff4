from http_service import HTTPService


handlers = HTTPService.load_handlers()


class MyService(HTTPService):
    handlers = handlers
