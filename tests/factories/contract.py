"""
Contract test factories.

Payloads use the camelCase keys the back-office form submits.
"""

import uuid

import factory
from faker import Faker

fake = Faker("pt_BR")


class UnitPayloadFactory(factory.Factory):
    """One consumption unit with a year of readings."""

    class Meta:
        model = dict

    name = factory.Sequence(lambda n: f"UC {n + 1}")
    consumptions = factory.LazyFunction(
        lambda: [float(fake.random_int(min=150, max=900)) for _ in range(12)]
    )


class ContractPayloadFactory(factory.Factory):
    """
    Factory for create-contract payloads.

    Usage:
        payload = ContractPayloadFactory()
        payload = ContractPayloadFactory(priceKwh=0.95, discountPercent=15)
    """

    class Meta:
        model = dict

    type = "RENTAL_PF"
    brand = "RENTAL"
    clientName = factory.LazyFunction(fake.name)
    clientDoc = factory.LazyFunction(lambda: fake.numerify("###########"))
    clientContact = factory.LazyFunction(fake.phone_number)
    clientAddress = factory.LazyFunction(lambda: fake.address().replace("\n", ", "))
    priceKwh = 1.0
    discountPercent = 20
    units = factory.LazyFunction(lambda: [UnitPayloadFactory()])


class DorataContractPayloadFactory(ContractPayloadFactory):
    type = "DORATA_PJ"
    brand = "DORATA"
    clientName = factory.LazyFunction(fake.company)
    clientDoc = factory.LazyFunction(lambda: fake.numerify("##############"))


class IndicacaoFactory(factory.Factory):
    """Lead columns, as stored in ``indicacoes``."""

    class Meta:
        model = dict

    id = factory.LazyFunction(uuid.uuid4)
    user_id = factory.LazyFunction(lambda: str(uuid.uuid4()))
    nome = factory.LazyFunction(fake.name)
    documento = factory.LazyFunction(lambda: fake.numerify("###########"))
    email = factory.LazyFunction(lambda: fake.email().lower())
    telefone = factory.LazyFunction(fake.phone_number)
    cidade = factory.LazyFunction(fake.city)
    estado = factory.LazyFunction(fake.estado_sigla)
    marca = "rental"
    tipo = "PF"
    status = "EM_ANALISE"
