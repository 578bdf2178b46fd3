"""Breaking Feed: bounded, deduplicated article and video feed with top-video push notifications."""
