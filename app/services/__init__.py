"""
Services module for GymCheckIn API

This module includes all service-related modules, which implement the business logic of the application.
Services interact with models, repositories, and external systems like Redis and the e-mail API.
"""
