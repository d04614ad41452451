"""GeoPoint value object — a latitude/longitude pair."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Float

from delivery.domain import delivery


@delivery.value_object
class GeoPoint:
    """A position on the globe, in decimal degrees.

    Used for pharmacy locations, courier pings and the requester's delivery
    coordinate captured at checkout. Absence of a position is modelled by the
    owning field being ``None``, never by a zero coordinate.
    """

    latitude: Float(min_value=-90.0, max_value=90.0)
    longitude: Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def both_coordinates_required(self):
        if self.latitude is None or self.longitude is None:
            raise ValidationError({"coordinates": ["Both latitude and longitude are required"]})
