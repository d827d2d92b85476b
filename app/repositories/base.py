from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class BaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        """
        Repository con operaciones CRUD por defecto y soporte para multi-tenant.

        Las operaciones de escritura aceptan commit=False para que el servicio
        pueda agrupar varias en una única transacción.
        """
        self.model = model

    def _tenant_query(self, db: Session, gym_id: Optional[int]):
        query = db.query(self.model)
        # Filtrar por gimnasio si el modelo tiene el atributo gym_id y se proporciona un gym_id
        if gym_id is not None and hasattr(self.model, "gym_id"):
            query = query.filter(self.model.gym_id == gym_id)
        return query

    def get(self, db: Session, id: Any, gym_id: Optional[int] = None) -> Optional[ModelType]:
        """
        Obtener un objeto por su ID con filtro opcional de tenant.

        Args:
            db: Sesión de base de datos
            id: ID del objeto a obtener
            gym_id: ID opcional del gimnasio (tenant) para filtrar

        Returns:
            El objeto solicitado o None si no existe
        """
        return self._tenant_query(db, gym_id).filter(self.model.id == id).first()

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: int = 100, gym_id: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[ModelType]:
        """
        Obtener múltiples registros con filtros opcionales.

        Args:
            db: Sesión de base de datos
            skip: Número de registros a omitir (paginación)
            limit: Número máximo de registros a devolver
            gym_id: ID opcional del gimnasio para filtrar resultados
            filters: Diccionario de filtros adicionales {campo: valor}

        Returns:
            Lista de objetos que coinciden con los criterios
        """
        query = self._apply_filters(self._tenant_query(db, gym_id), filters)
        return query.order_by(self.model.id).offset(skip).limit(limit).all()

    def count(self, db: Session, *, gym_id: Optional[int] = None, filters: Optional[Dict[str, Any]] = None) -> int:
        query = self._apply_filters(self._tenant_query(db, gym_id), filters)
        return query.with_entities(func.count(self.model.id)).scalar() or 0

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if filters:
            for field, value in filters.items():
                if hasattr(self.model, field):
                    query = query.filter(getattr(self.model, field) == value)
        return query

    def create(
        self, db: Session, *, obj_in: Union[CreateSchemaType, Dict[str, Any]],
        gym_id: Optional[int] = None, commit: bool = True
    ) -> ModelType:
        """
        Crear un nuevo registro con soporte para tenant.

        Args:
            db: Sesión de base de datos
            obj_in: Datos del objeto a crear
            gym_id: ID opcional del gimnasio (tenant)
            commit: Si es False solo hace flush y deja la transacción abierta

        Returns:
            El objeto creado
        """
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        obj_in_data = dict(obj_in_data)

        # Añadir gym_id si se proporciona y el modelo tiene ese campo
        if gym_id is not None and hasattr(self.model, "gym_id"):
            obj_in_data["gym_id"] = gym_id

        db_obj = self.model(**obj_in_data)
        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]],
        commit: bool = True
    ) -> ModelType:
        """
        Actualizar los campos presentes en obj_in.

        Args:
            db: Sesión de base de datos
            db_obj: Objeto existente a actualizar
            obj_in: Datos de actualización (schema parcial o dict)

        Returns:
            El objeto actualizado
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        db.add(db_obj)
        if commit:
            db.commit()
            db.refresh(db_obj)
        else:
            db.flush()
        return db_obj

    def exists(self, db: Session, id: int, gym_id: Optional[int] = None) -> bool:
        """
        Verificar si un objeto existe con verificación opcional de tenant.
        """
        query = db.query(self.model.id).filter(self.model.id == id)

        if gym_id is not None and hasattr(self.model, "gym_id"):
            query = query.filter(self.model.gym_id == gym_id)

        return db.query(query.exists()).scalar()
