"""CRM API for business owners."""

from __future__ import annotations

from django.db.models import Q  # type: ignore
from rest_framework import mixins, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.businesses.services import get_owned_business
from apps.users.permissions import IsBusinessOwner

from .models import CustomerProfile
from .serializers import CommunicationSerializer, CustomerProfileDetailSerializer, CustomerProfileSerializer
from .services import build_profiles, customer_metrics, send_customer_message


class CustomerProfileViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    Customers of the owner's business.

    Listing builds profiles from booking history the first time. Supports
    ``search`` (name or email), ``tag`` and ``vip=true``.
    """

    permission_classes = [IsBusinessOwner]
    http_method_names = ["get", "patch", "post", "head", "options"]

    def get_serializer_class(self):  # type: ignore
        if self.action == "retrieve":
            return CustomerProfileDetailSerializer
        return CustomerProfileSerializer

    def get_queryset(self):  # type: ignore
        qs = CustomerProfile.objects.filter(business__owner=self.request.user).select_related(
            "user", "favorite_service"
        )
        params = self.request.query_params
        search = params.get("search")
        if search:
            qs = qs.filter(
                Q(user__email__icontains=search)
                | Q(user__first_name__icontains=search)
                | Q(user__last_name__icontains=search)
                | Q(user__username__icontains=search)
            )
        tag = params.get("tag")
        if tag:
            qs = qs.filter(tags__icontains=f'"{tag}"')
        if params.get("vip") == "true":
            qs = qs.filter(is_vip=True)
        return qs.order_by("-last_visit", "-id")

    def list(self, request, *args, **kwargs):  # type: ignore
        build_profiles(get_owned_business(request.user))
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):  # type: ignore
        profile = self.get_object()
        profile = (
            CustomerProfile.objects.select_related("user", "favorite_service")
            .prefetch_related("communications__staff")
            .get(pk=profile.pk)
        )
        return Response(CustomerProfileDetailSerializer(profile).data)

    @action(detail=False, methods=["get"])
    def metrics(self, request):  # type: ignore
        business = get_owned_business(request.user)
        build_profiles(business)
        return Response(customer_metrics(business))

    @action(detail=True, methods=["post"])
    def message(self, request, pk=None):  # type: ignore
        profile = self.get_object()
        serializer = CommunicationSerializer(data=request.data, context={"business": profile.business})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        communication = send_customer_message(
            profile,
            type=data.get("type", "NOTE"),
            subject=data.get("subject", ""),
            content=data["content"],
            staff=data.get("staff"),
        )
        return Response(CommunicationSerializer(communication).data, status=status.HTTP_201_CREATED)
