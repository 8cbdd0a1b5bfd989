"""Delivery of generated editions to readers by e-mail."""