from fastapi.requests import HTTPConnection

from realtime.channel import FanoutChannel


def get_channel(connection: HTTPConnection) -> FanoutChannel:
    # Works for both HTTP requests and websockets
    return connection.app.state.channel
