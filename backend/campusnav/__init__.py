"""Campus navigation directions and shuttle itinerary core."""
