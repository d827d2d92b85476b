# Inicializador del paquete repositories
from app.repositories.base import BaseRepository

from app.repositories.gym import gym_repository, subscription_plan_repository
from app.repositories.membership_plan import membership_plan_repository
from app.repositories.student import student_repository
from app.repositories.check_in import check_in_repository
