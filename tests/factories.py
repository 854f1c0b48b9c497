import string

import factory
import factory.fuzzy

import cotify.models as models

UNITS = ['UN', 'KG', 'CX', 'PCT', 'LT']
STATES = ['SP', 'RJ', 'MG', 'RS', 'PR', 'BA']


class SupplierFactory(factory.alchemy.SQLAlchemyModelFactory):
    document = factory.Sequence(lambda n: '%014d' % (n + 1))
    name = factory.Faker('company', locale='pt_BR')
    trade_name = factory.LazyAttribute(lambda o: o.name)
    address = factory.Faker('street_address', locale='pt_BR')
    city = factory.Faker('city', locale='pt_BR')
    state = factory.fuzzy.FuzzyChoice(STATES)

    class Meta:
        model = models.Supplier
        sqlalchemy_session_persistence = 'commit'


class BranchFactory(factory.alchemy.SQLAlchemyModelFactory):
    document = factory.Sequence(lambda n: '%014d' % (n + 50000))
    name = factory.Sequence(lambda n: 'Filial %d' % n)
    trade_name = factory.LazyAttribute(lambda o: o.name)
    city = factory.Faker('city', locale='pt_BR')
    state = factory.fuzzy.FuzzyChoice(STATES)

    class Meta:
        model = models.Branch
        sqlalchemy_session_persistence = 'commit'


class ProductFactory(factory.alchemy.SQLAlchemyModelFactory):
    name = factory.Sequence(lambda n: 'Produto %d' % n)
    unit = factory.fuzzy.FuzzyChoice(UNITS)
    ncm = factory.fuzzy.FuzzyText(length=8, chars=string.digits)

    class Meta:
        model = models.Product
        sqlalchemy_session_persistence = 'commit'


class OrderFactory(factory.alchemy.SQLAlchemyModelFactory):
    supplier = factory.SubFactory(SupplierFactory)
    product = factory.SubFactory(ProductFactory)
    branch = factory.SubFactory(BranchFactory)
    quantity = factory.fuzzy.FuzzyInteger(1, 10)
    unit_price = factory.fuzzy.FuzzyFloat(1.0, 100.0)
    date = factory.Faker('date_object')

    @factory.lazy_attribute
    def total(self):
        return self.unit_price * self.quantity

    class Meta:
        model = models.Order
        sqlalchemy_session_persistence = 'commit'


ALL = [SupplierFactory, BranchFactory, ProductFactory, OrderFactory]


def bind(session):
    """Point every factory at the test session"""
    for f in ALL:
        f._meta.sqlalchemy_session = session
