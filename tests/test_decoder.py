import pytest

from territory_engine.exceptions import DecodeError, TerritoryEngineError
from territory_engine.services.decoder import decode_route, encode_route, route_to_linestring

# Reference polyline from the encoded-polyline algorithm documentation.
REFERENCE = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def test_decode_returns_longitude_first():
    coordinates = decode_route(REFERENCE)

    assert coordinates == [
        pytest.approx((-120.2, 38.5)),
        pytest.approx((-120.95, 40.7)),
        pytest.approx((-126.453, 43.252)),
    ]


def test_encode_is_inverse_of_decode():
    coordinates = [(-120.2, 38.5), (-120.95, 40.7), (-126.453, 43.252)]

    assert encode_route(coordinates) == REFERENCE


def test_route_to_linestring():
    line = route_to_linestring(REFERENCE)

    assert len(line.coords) == 3
    assert line.coords[0] == pytest.approx((-120.2, 38.5))


@pytest.mark.parametrize("encoded", ["", "   ", "_p~iF~ps|U_"])
def test_malformed_routes_raise_decode_error(encoded):
    with pytest.raises(DecodeError):
        decode_route(encoded)


def test_single_point_route_is_rejected():
    with pytest.raises(DecodeError, match="at least 2 points"):
        decode_route("_p~iF~ps|U")


def test_invalid_characters_are_rejected():
    with pytest.raises(DecodeError, match="invalid character"):
        decode_route("_p~iF ~ps|U")


def test_decode_error_is_an_engine_error():
    with pytest.raises(TerritoryEngineError):
        decode_route("")
