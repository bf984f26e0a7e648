"""scriptreel: turns a video idea into a scene-by-scene script with one storyboard image per scene."""
