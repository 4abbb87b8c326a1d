"""Errors reported while waiting on container states in a pipeline pod."""